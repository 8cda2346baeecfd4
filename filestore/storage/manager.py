"""
Default store management for application-wide storage access.

init() publishes one Store as the process default; the module-level
functions forward to it. Using them before init() succeeded raises
StoreNotInitializedError.
"""

import logging
import threading
from typing import Any, BinaryIO, List, Mapping, Optional, Sequence, Union

from filestore.common.logging_config import setup_logging
from filestore.common.metrics import record_active_adapter, set_metrics_enabled
from filestore.config.settings import Settings, get_settings
from filestore.storage.adapter import File, UploadOptions
from filestore.storage.context import Context
from filestore.storage.errors import StoreNotInitializedError
from filestore.storage.factory import new_store
from filestore.storage.store import Store

logger = logging.getLogger(__name__)

# Global instance (initialized by init())
_default_store: Optional[Store] = None
_default_lock = threading.Lock()


def init(adapter_type: str, config: Any) -> Store:
    """
    Resolve an adapter and publish it as the default store.

    Args:
        adapter_type: Registered backend type
        config: Backend-specific configuration

    Returns:
        The new default Store

    Raises:
        UnknownAdapterError: If adapter_type is not registered
        StorageConfigError: If the configuration is rejected
    """
    global _default_store
    store = new_store(adapter_type, config)
    with _default_lock:
        _default_store = store
    record_active_adapter(adapter_type)
    logger.info("Default store initialized", extra={"adapter_type": adapter_type})
    return store


def init_from_settings(settings: Optional[Settings] = None,
                       configure_logging: bool = False) -> Store:
    """
    Initialize the default store from application settings.

    Args:
        settings: Settings to use (defaults to get_settings())
        configure_logging: Also install root logging from log_level/log_json
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, json_format=settings.log_json)
    set_metrics_enabled(settings.metrics_enabled)
    return init(settings.storage_backend.lower(), settings.adapter_config())


def get_default_store() -> Store:
    """Get the default store, raising if init() has not succeeded."""
    with _default_lock:
        store = _default_store
    if store is None:
        raise StoreNotInitializedError()
    return store


def is_initialized() -> bool:
    with _default_lock:
        return _default_store is not None


def reset_default_store() -> None:
    """Forget the default store (useful for testing)."""
    global _default_store
    with _default_lock:
        _default_store = None


def upload(path: str, reader: BinaryIO, size: int,
           options: Union[UploadOptions, Mapping[str, str], None] = None,
           ctx: Optional[Context] = None) -> None:
    get_default_store().upload(path, reader, size, options, ctx=ctx)


def download(object: str, ctx: Optional[Context] = None) -> BinaryIO:
    return get_default_store().download(object, ctx=ctx)


def delete(*objects: str, ctx: Optional[Context] = None) -> None:
    get_default_store().delete(*objects, ctx=ctx)


def deletes(objects: Sequence[str], ctx: Optional[Context] = None) -> None:
    get_default_store().delete_many(objects, ctx=ctx)


def lists(prefix: str, ctx: Optional[Context] = None) -> List[File]:
    return get_default_store().lists(prefix, ctx=ctx)


def get_info(object: str, ctx: Optional[Context] = None) -> File:
    return get_default_store().get_info(object, ctx=ctx)


def is_exist(object: str, ctx: Optional[Context] = None) -> None:
    get_default_store().is_exist(object, ctx=ctx)


def get_sign_url(object: str, expire: Optional[int] = None,
                 ctx: Optional[Context] = None) -> str:
    return get_default_store().get_sign_url(object, expire, ctx=ctx)


def ping_test(ctx: Optional[Context] = None) -> None:
    get_default_store().ping_test(ctx=ctx)
