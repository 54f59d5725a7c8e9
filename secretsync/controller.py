"""
Secret reconciliation entry point.

One call reconciles one changed secret: resolve its destination, decide
against whatever replica already exists there, and write if needed. Each
call reads everything fresh from the store and keeps no state.
"""

from dataclasses import dataclass
from typing import Optional

from .conflict import Action, decide
from .errors import NotFoundError, SyncError
from .logger import StructuredLogger, get_logger
from .records import DEFAULT_CLUSTER, SYNC_ANNOTATION, Record
from .replicator import replicate
from .selector import NO_DIRECTIVE, resolve_destination
from .storage import Store

SOURCE_GONE = "source-gone"
REPLICA = "replica"


@dataclass
class ReconcileResult:
    action: Action
    reason: str
    source: str
    destination: Optional[str] = None
    replica: Optional[Record] = None


class SecretController:
    """Reconciles secrets carrying a sync directive."""

    def __init__(
        self,
        store: Store,
        cluster: str = DEFAULT_CLUSTER,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.cluster = cluster
        self.logger = logger or get_logger()

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Reconcile the secret namespace/name.

        Returns:
            ReconcileResult describing the write made, or why none was

        Raises:
            StoreError: Store read or write failed; retry later
            ProvenanceError: Existing replica has a malformed origin
            VersionError: resourceVersions could not be compared
        """
        self.logger.record_reconcile()
        try:
            result = self._reconcile(namespace, name)
        except SyncError as e:
            self.logger.record_failure(type(e).__name__)
            self.logger.error(
                "Reconcile failed",
                secret=f"{namespace}/{name}",
                error=str(e),
                retryable=e.retryable,
            )
            raise
        self.logger.record_outcome(result.action.value, result.reason)
        return result

    def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        key = f"{namespace}/{name}"
        try:
            source = self.store.get(namespace, name)
        except NotFoundError:
            return ReconcileResult(Action.NOOP, SOURCE_GONE, key)

        if source.is_replica:
            self.logger.debug("Skipping already managed secret", secret=key)
            return ReconcileResult(Action.NOOP, REPLICA, key)

        directive = source.annotations.get(SYNC_ANNOTATION)
        if directive is None:
            return ReconcileResult(Action.NOOP, NO_DIRECTIVE, key)

        resolution = resolve_destination(self.store, directive, logger=self.logger)
        if not resolution.resolved:
            return ReconcileResult(Action.NOOP, resolution.reason, key)

        destination = resolution.partition.name
        self.logger.info("Triggering sync for secret", secret=key, destination=destination)

        try:
            existing = self.store.get(destination, source.name)
        except NotFoundError:
            existing = None

        decision = decide(source, destination, existing)
        if not decision.writes:
            self.logger.info(
                "Ignoring sync",
                secret=key,
                destination=destination,
                reason=decision.reason,
            )
            return ReconcileResult(Action.NOOP, decision.reason, key, destination)

        replica = replicate(
            self.store,
            source,
            destination,
            decision,
            existing=existing,
            cluster=self.cluster,
            logger=self.logger,
        )
        return ReconcileResult(decision.action, decision.reason, key, destination, replica)
