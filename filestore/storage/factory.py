"""
Storage factory: registry of adapter constructors keyed by backend type.

Built-in backends are registered at import time. Applications can add their
own with register_adapter(); the last registration for a name wins.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

from filestore.storage.adapter import StorageAdapter
from filestore.storage.errors import UnknownAdapterError
from filestore.storage.filesystem import FilesystemStorage
from filestore.storage.memory import MemoryStorage
from filestore.storage.minio_storage import MinioStorage
from filestore.storage.s3 import S3Storage
from filestore.storage.store import Store

logger = logging.getLogger(__name__)

AdapterConstructor = Callable[[Any], StorageAdapter]

TYPE_LOCAL = "local"
TYPE_MEMORY = "memory"
TYPE_MINIO = "minio"
TYPE_S3 = "s3"
TYPE_OSS = "oss"  # Aliyun OSS, S3-compatible endpoint
TYPE_COS = "cos"  # Tencent COS, S3-compatible endpoint
TYPE_OBS = "obs"  # Huawei OBS, S3-compatible endpoint
TYPE_BOS = "bos"  # Baidu BOS, S3-compatible endpoint
TYPE_QINIU = "qiniu"  # Qiniu Kodo, S3-compatible endpoint

_adapters: Dict[str, AdapterConstructor] = {}
_adapters_lock = threading.Lock()


def register_adapter(adapter_type: str, constructor: AdapterConstructor) -> None:
    """
    Register (or replace) the constructor for a backend type.

    Args:
        adapter_type: Backend type name
        constructor: Callable taking the opaque configuration and returning
            a StorageAdapter

    Raises:
        ValueError: If adapter_type is empty
    """
    if not adapter_type or not adapter_type.strip():
        raise ValueError("Adapter type must be a non-empty string")
    with _adapters_lock:
        replaced = adapter_type in _adapters
        _adapters[adapter_type] = constructor
    logger.debug(
        "Storage adapter registered",
        extra={"adapter_type": adapter_type, "replaced": replaced},
    )


def registered_adapter_types() -> List[str]:
    """Names of all registered backend types."""
    with _adapters_lock:
        return sorted(_adapters)


def resolve_adapter(adapter_type: str, config: Any) -> StorageAdapter:
    """
    Build an adapter for a backend type.

    Configuration is validated by the adapter's constructor, not here.

    Args:
        adapter_type: Backend type name
        config: Backend-specific configuration

    Returns:
        StorageAdapter instance

    Raises:
        UnknownAdapterError: If no constructor is registered for adapter_type
        StorageConfigError: If the constructor rejects the configuration
    """
    with _adapters_lock:
        constructor = _adapters.get(adapter_type)
    if constructor is None:
        raise UnknownAdapterError(adapter_type)
    return constructor(config)


def new_store(adapter_type: str, config: Any) -> Store:
    """Create a Store backed by a freshly resolved adapter."""
    return Store(resolve_adapter(adapter_type, config))


def _register_builtin_adapters() -> None:
    register_adapter(TYPE_LOCAL, FilesystemStorage.from_config)
    register_adapter(TYPE_MEMORY, MemoryStorage.from_config)
    register_adapter(TYPE_MINIO, MinioStorage.from_config)
    for adapter_type in (TYPE_S3, TYPE_OSS, TYPE_COS, TYPE_OBS, TYPE_BOS, TYPE_QINIU):
        register_adapter(adapter_type, S3Storage.from_config)


_register_builtin_adapters()
