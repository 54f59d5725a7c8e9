"""
Writes replicas into the destination namespace.

The payload is always replaced wholesale; origin annotation and labels are
stamped in the same write so provenance never lags the data.
"""

from dataclasses import replace
from typing import Optional

from .conflict import Action, Decision
from .logger import StructuredLogger, get_logger
from .origin import OriginProvenance, encode_origin
from .records import (
    DEFAULT_CLUSTER,
    ORIGIN_ANNOTATION,
    ORIGIN_CLUSTER_LABEL,
    ORIGIN_NAME_LABEL,
    ORIGIN_NAMESPACE_LABEL,
    Record,
)
from .storage import Store


def build_replica(
    source: Record,
    destination: str,
    origin: OriginProvenance,
    cluster: str = DEFAULT_CLUSTER,
    existing: Optional[Record] = None,
) -> Record:
    """Build the record to write for `source` in `destination`."""
    if existing is None:
        replica = Record(namespace=destination, name=source.name, type=source.type)
    else:
        replica = replace(
            existing,
            annotations=dict(existing.annotations),
            labels=dict(existing.labels),
        )

    replica.data = dict(source.data)
    replica.annotations[ORIGIN_ANNOTATION] = encode_origin(origin)
    replica.labels[ORIGIN_CLUSTER_LABEL] = cluster
    replica.labels[ORIGIN_NAME_LABEL] = source.name
    replica.labels[ORIGIN_NAMESPACE_LABEL] = source.namespace
    return replica


def replicate(
    store: Store,
    source: Record,
    destination: str,
    decision: Decision,
    existing: Optional[Record] = None,
    cluster: str = DEFAULT_CLUSTER,
    logger: Optional[StructuredLogger] = None,
) -> Optional[Record]:
    """
    Carry out a decision against the store.

    Args:
        logger: Where write diagnostics go (default: the global logger)

    Returns:
        The stored replica, or None when the decision was a no-op
    """
    if decision.action is Action.NOOP:
        return None

    # Caller misuse only: decide() never yields UPDATE without an existing record
    if decision.action is Action.UPDATE and existing is None:
        raise ValueError(f"Update of {destination}/{source.name} needs the existing record")

    logger = logger or get_logger()
    replica = build_replica(
        source,
        destination,
        decision.origin,
        cluster=cluster,
        existing=existing if decision.action is Action.UPDATE else None,
    )

    if decision.action is Action.CREATE:
        logger.info("Creating new secret", secret=replica.key, origin=source.key)
        return store.create(replica)

    logger.info("Updating existing secret", secret=replica.key, origin=source.key, reason=decision.reason)
    return store.update(replica)
