"""
Destination selection from a source's sync directive.

A directive is a single `key=value` label pair. It resolves only when
exactly one namespace carries that label; anything else is a no-op.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .logger import StructuredLogger, get_logger
from .records import Partition
from .storage import Store

NO_DIRECTIVE = "no-directive"
MALFORMED_DIRECTIVE = "malformed-directive"
NO_MATCH = "no-match"
AMBIGUOUS_MATCH = "ambiguous-match"
RESOLVED = "resolved"


@dataclass
class Resolution:
    """Outcome of resolving a directive to a destination namespace."""

    reason: str
    partition: Optional[Partition] = None
    candidates: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.partition is not None


def parse_directive(value: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split `key=value` once. Returns None when there is no usable pair."""
    if not value:
        return None
    parts = value.split("=", 1)
    if len(parts) != 2 or not parts[0]:
        return None
    return parts[0], parts[1]


def resolve_destination(
    store: Store,
    value: Optional[str],
    logger: Optional[StructuredLogger] = None,
) -> Resolution:
    """
    Resolve a sync directive to exactly one namespace.

    Args:
        store: Store used to list namespaces by label
        value: Raw sync annotation value (may be None)
        logger: Where diagnostics go (default: the global logger)

    Returns:
        Resolution with `partition` set only on a unique match. Store
        errors propagate.
    """
    if value is None:
        return Resolution(reason=NO_DIRECTIVE)

    logger = logger or get_logger()
    pair = parse_directive(value)
    if pair is None:
        logger.debug("Ignoring malformed sync directive", directive=value)
        return Resolution(reason=MALFORMED_DIRECTIVE)

    selector = {pair[0]: pair[1]}
    matches = store.list_partitions(selector)
    names = [p.name for p in matches]

    if len(matches) != 1:
        logger.warning(
            "Expected exactly one namespace to match label selector",
            selector=selector,
            matched=names,
        )
        reason = NO_MATCH if not matches else AMBIGUOUS_MATCH
        return Resolution(reason=reason, candidates=names)

    return Resolution(reason=RESOLVED, partition=matches[0], candidates=names)
