import base64
import binascii
import json
from pathlib import Path
from typing import Any, Dict, List, Union

from .records import DEFAULT_SECRET_TYPE, Partition, Record

KINDS = ("Secret", "Namespace")
STR_MAP_FIELDS = ["labels", "annotations"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_str_map(v: Any) -> bool:
    return isinstance(v, dict) and all(
        isinstance(k, str) and isinstance(x, str) for k, x in v.items()
    )


def _valid_base64(v: str) -> bool:
    try:
        base64.b64decode(v, validate=True)
        return True
    except (binascii.Error, ValueError):
        return False


def validate_manifest(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Checks the subset of Secret/Namespace manifests secretsync reads.
    """
    errors: List[str] = []

    if not isinstance(data, dict):
        return ["Manifest must be a JSON object"]

    kind = data.get("kind")
    if kind not in KINDS:
        errors.append(f"Field 'kind' must be one of {', '.join(KINDS)}")

    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        errors.append("Missing required field: metadata")
        return errors

    if not _is_non_empty_str(metadata.get("name")):
        errors.append("Field 'metadata.name' must be a non-empty string")

    for f in STR_MAP_FIELDS:
        if f in metadata and not _is_str_map(metadata[f]):
            errors.append(f"Field 'metadata.{f}' must map strings to strings")

    if kind != "Secret":
        return errors

    if not _is_non_empty_str(metadata.get("namespace")):
        errors.append("Field 'metadata.namespace' must be a non-empty string")

    if "type" in data and not _is_non_empty_str(data["type"]):
        errors.append("Field 'type' must be a non-empty string if provided")

    if "data" in data:
        if not _is_str_map(data["data"]):
            errors.append("Field 'data' must map strings to base64 strings")
        else:
            for k, v in data["data"].items():
                if not _valid_base64(v):
                    errors.append(f"Field 'data.{k}' is not valid base64")

    if "stringData" in data and not _is_str_map(data["stringData"]):
        errors.append("Field 'stringData' must map strings to strings")

    return errors


def manifest_to_object(data: Dict[str, Any]) -> Union[Partition, Record]:
    """Convert a validated manifest into a Partition or Record."""
    metadata = data["metadata"]
    labels = dict(metadata.get("labels") or {})

    if data["kind"] == "Namespace":
        return Partition(name=metadata["name"], labels=labels)

    payload = {k: base64.b64decode(v) for k, v in (data.get("data") or {}).items()}
    # stringData wins over data for the same key, as in Kubernetes
    for k, v in (data.get("stringData") or {}).items():
        payload[k] = v.encode("utf-8")

    return Record(
        namespace=metadata["namespace"],
        name=metadata["name"],
        data=payload,
        annotations=dict(metadata.get("annotations") or {}),
        labels=labels,
        type=data.get("type") or DEFAULT_SECRET_TYPE,
    )


def load_manifests(path: Path) -> List[Dict[str, Any]]:
    """Read one manifest, a JSON list of them, or a `List` wrapper."""
    with path.open("r", encoding="utf-8") as f:
        content = json.load(f)
    if isinstance(content, dict) and content.get("kind") == "List":
        return list(content.get("items") or [])
    if isinstance(content, list):
        return content
    return [content]
