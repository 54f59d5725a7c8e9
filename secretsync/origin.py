"""
Origin provenance embedded in every replica.

The annotation value is compact JSON with the keys namespace, name, uid
and resourceVersion in that order, matching what kubed writes.
"""

import json
from dataclasses import dataclass
from typing import Optional

from .errors import ProvenanceError
from .records import ORIGIN_ANNOTATION, Record

_FIELDS = (
    ("namespace", "namespace"),
    ("name", "name"),
    ("uid", "uid"),
    ("resourceVersion", "resource_version"),
)


@dataclass(frozen=True)
class OriginProvenance:
    """Which source record, at which version, produced a replica."""

    namespace: str
    name: str
    uid: str
    resource_version: str

    @classmethod
    def from_record(cls, record: Record) -> "OriginProvenance":
        return cls(
            namespace=record.namespace,
            name=record.name,
            uid=record.uid,
            resource_version=record.resource_version,
        )


def encode_origin(origin: OriginProvenance) -> str:
    payload = {key: getattr(origin, attr) for key, attr in _FIELDS}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def decode_origin(text: str) -> OriginProvenance:
    """
    Parse a stored origin annotation.

    Raises:
        ProvenanceError: If the value is not a JSON object holding all
            four fields as strings.
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ProvenanceError(f"Invalid origin annotation {text!r}: {e}") from e

    if not isinstance(payload, dict):
        raise ProvenanceError(f"Origin annotation must be a JSON object: {text!r}")

    values = {}
    for key, attr in _FIELDS:
        value = payload.get(key)
        if not isinstance(value, str):
            raise ProvenanceError(f"Origin annotation field '{key}' missing or not a string: {text!r}")
        values[attr] = value
    return OriginProvenance(**values)


def read_origin(record: Record) -> Optional[OriginProvenance]:
    """Return the record's provenance, or None if it carries none."""
    text = record.annotations.get(ORIGIN_ANNOTATION)
    if text is None:
        return None
    return decode_origin(text)
