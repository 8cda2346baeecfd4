"""
filestore: one API for local, in-memory, MinIO and S3-compatible object storage.

Usage:
    import filestore

    filestore.init("local", {"path": "./storage", "domain": "http://localhost/files"})
    filestore.upload("docs/a.txt", fp, size, {"Content-Type": "text/plain"})
    url = filestore.get_sign_url("docs/a.txt")
"""

from filestore.storage import (
    BatchDeleteError,
    Context,
    File,
    ObjectNotFoundError,
    StorageAdapter,
    StorageBackendError,
    StorageCancelledError,
    StorageConfigError,
    StorageDeadlineExceededError,
    StorageError,
    Store,
    StoreNotInitializedError,
    UnknownAdapterError,
    UploadOptions,
    new_store,
    object_abs,
    object_rel,
    register_adapter,
    registered_adapter_types,
    resolve_adapter,
)
from filestore.storage.manager import (
    delete,
    deletes,
    download,
    get_default_store,
    get_info,
    get_sign_url,
    init,
    init_from_settings,
    is_exist,
    is_initialized,
    lists,
    ping_test,
    reset_default_store,
    upload,
)

__version__ = "0.1.0"

__all__ = [
    "File",
    "StorageAdapter",
    "UploadOptions",
    "Context",
    "Store",
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
    "object_rel",
    "object_abs",
    "init",
    "init_from_settings",
    "get_default_store",
    "is_initialized",
    "reset_default_store",
    "upload",
    "download",
    "delete",
    "deletes",
    "lists",
    "get_info",
    "is_exist",
    "get_sign_url",
    "ping_test",
    "__version__",
]
