"""
Error types raised by the reconciliation core and the store.

StoreError and its subclasses are retryable: the caller is expected to
redeliver the event later. ProvenanceError and VersionError mean the
existing replica cannot be judged safely and the event fails as is.
"""


class SyncError(Exception):
    """Base class for all secretsync errors."""

    retryable = False


class StoreError(SyncError):
    """A read or write against the store failed."""

    retryable = True


class NotFoundError(StoreError):
    """The requested record does not exist."""

    def __init__(self, namespace: str, name: str):
        super().__init__(f"{namespace}/{name} not found")
        self.namespace = namespace
        self.name = name


class ConflictError(StoreError):
    """The stored record changed since it was read."""
    pass


class AlreadyExistsError(ConflictError):
    """A record with the same namespace and name already exists."""

    def __init__(self, namespace: str, name: str):
        super().__init__(f"{namespace}/{name} already exists")
        self.namespace = namespace
        self.name = name


class ProvenanceError(SyncError):
    """Stored origin annotation could not be decoded."""
    pass


class VersionError(SyncError):
    """A resource version is not a decimal integer."""
    pass
