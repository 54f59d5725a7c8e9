"""
Replica Write Decision.

Responsibilities:
- Decide whether a sync creates, updates or leaves the destination alone.
- Guard against circular syncs and stale or repeated deliveries.

Non-Responsibilities:
- No store access.
- No record construction.

Invariant:
An update is only chosen when the source's resourceVersion is strictly
newer than the one recorded in the replica's provenance, so redelivery
of the same event never rewrites the destination.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import VersionError
from .origin import OriginProvenance, read_origin
from .records import Record


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    NOOP = "noop"


MISSING = "missing"
ADOPT = "adopt"
NEWER = "newer"
CIRCULAR = "circular"
STALE = "stale"


@dataclass(frozen=True)
class Decision:
    action: Action
    reason: str
    origin: Optional[OriginProvenance] = None

    @property
    def writes(self) -> bool:
        return self.action is not Action.NOOP


def parse_version(value: str, what: str) -> int:
    """Parse a decimal resourceVersion."""
    try:
        return int(value, 10)
    except (TypeError, ValueError):
        raise VersionError(f"{what} resourceVersion is not a decimal integer: {value!r}") from None


def decide(source: Record, destination: str, existing: Optional[Record]) -> Decision:
    """
    Decide what to do with the replica of `source` in `destination`.

    Args:
        source: The record being synced
        destination: Namespace the replica lives in
        existing: Current record at destination/source.name, or None

    Raises:
        ProvenanceError: The existing replica's origin annotation is malformed
        VersionError: A resourceVersion could not be compared
    """
    if existing is None:
        return Decision(Action.CREATE, MISSING, OriginProvenance.from_record(source))

    if destination == source.namespace and existing.name == source.name:
        return Decision(Action.NOOP, CIRCULAR)

    recorded = read_origin(existing)
    if recorded is None:
        return Decision(Action.UPDATE, ADOPT, OriginProvenance.from_record(source))

    recorded_version = parse_version(recorded.resource_version, f"Replica {existing.key} origin")
    source_version = parse_version(source.resource_version, f"Source {source.key}")
    if recorded_version >= source_version:
        return Decision(Action.NOOP, STALE)

    return Decision(Action.UPDATE, NEWER, OriginProvenance.from_record(source))
