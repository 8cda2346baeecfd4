"""
Storage backend abstraction for object operations.

Provides adapters for local filesystem, in-memory, MinIO and S3-compatible
storage, a Store facade, and a process-wide default store.
"""

from filestore.storage.adapter import File, StorageAdapter, UploadOptions
from filestore.storage.context import Context, run_with_context
from filestore.storage.errors import (
    BatchDeleteError,
    ObjectNotFoundError,
    StorageBackendError,
    StorageCancelledError,
    StorageConfigError,
    StorageDeadlineExceededError,
    StorageError,
    StoreNotInitializedError,
    UnknownAdapterError,
)
from filestore.storage.factory import (
    new_store,
    register_adapter,
    registered_adapter_types,
    resolve_adapter,
)
from filestore.storage.filesystem import FilesystemStorage
from filestore.storage.memory import MemoryStorage
from filestore.storage.minio_storage import MinioStorage
from filestore.storage.paths import object_abs, object_rel
from filestore.storage.s3 import S3Storage
from filestore.storage.store import Store

__all__ = [
    "File",
    "StorageAdapter",
    "UploadOptions",
    "Context",
    "run_with_context",
    "StorageError",
    "StorageConfigError",
    "UnknownAdapterError",
    "ObjectNotFoundError",
    "BatchDeleteError",
    "StorageBackendError",
    "StorageCancelledError",
    "StorageDeadlineExceededError",
    "StoreNotInitializedError",
    "register_adapter",
    "registered_adapter_types",
    "resolve_adapter",
    "new_store",
    "FilesystemStorage",
    "MemoryStorage",
    "MinioStorage",
    "S3Storage",
    "object_rel",
    "object_abs",
    "Store",
]
