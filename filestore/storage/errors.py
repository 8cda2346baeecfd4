"""
Exceptions raised by storage adapters, the store facade and the registry.

Every error derives from StorageError so callers can catch storage failures
with a single except clause and still branch on the specific subclass
(e.g. "object does not exist" versus "backend call failed").
"""

from typing import List, Optional, Sequence, Tuple


class StorageError(Exception):
    """Exception raised for storage-related errors."""
    pass


class StorageConfigError(StorageError):
    """Raised when an adapter configuration is missing or malformed."""

    def __init__(self, adapter_type: str, message: str):
        self.adapter_type = adapter_type
        super().__init__(f"Invalid configuration for '{adapter_type}' adapter: {message}")


class UnknownAdapterError(StorageError):
    """Raised when no constructor is registered for an adapter type."""

    def __init__(self, adapter_type: str):
        self.adapter_type = adapter_type
        super().__init__(f"Unknown adapter type: '{adapter_type}'")


class ObjectNotFoundError(StorageError):
    """Raised when an object is absent from the backend."""

    def __init__(self, object_name: str, cause: Optional[Exception] = None):
        self.object_name = object_name
        self.cause = cause
        super().__init__(f"Object not found: '{object_name}'")


class BatchDeleteError(StorageError):
    """
    Raised when one or more objects of a bulk delete failed.

    The message joins the per-object messages with "; ". The individual
    (object, message) pairs are kept in `failures`. Objects that were deleted
    successfully are not restored.
    """

    def __init__(self, failures: Sequence[Tuple[str, str]]):
        self.failures: List[Tuple[str, str]] = list(failures)
        super().__init__("; ".join(message for _, message in self.failures))

    @property
    def failed_objects(self) -> List[str]:
        return [name for name, _ in self.failures]


class StorageBackendError(StorageError):
    """Raised when the underlying backend call fails (transport, auth, server)."""

    def __init__(self, operation: str, object_name: str, cause: Exception):
        self.operation = operation
        self.object_name = object_name
        self.cause = cause
        super().__init__(f"Failed to {operation} '{object_name}': {cause}")


class StorageCancelledError(StorageError):
    """Raised when the caller's context was cancelled."""
    pass


class StorageDeadlineExceededError(StorageCancelledError):
    """Raised when the caller's context deadline passed."""
    pass


class StoreNotInitializedError(StorageError):
    """Raised when the default store is used before init() succeeded."""

    def __init__(self):
        super().__init__(
            "Default store is not initialized. Call filestore.init() first."
        )
