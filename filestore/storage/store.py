"""
Store facade over a single, swappable storage adapter.

Every operation forwards 1:1 to the held adapter. The adapter reference is
read once per call, so a call that is already running finishes against the
adapter it started with even if set_adapter() swaps it meanwhile.
"""

import logging
import threading
from io import BytesIO
from typing import BinaryIO, List, Mapping, Optional, Sequence, Union

from filestore.common.logging_config import PerformanceTracker
from filestore.common.metrics import (
    record_deleted_objects,
    record_upload_bytes,
    track_storage_operation,
)
from filestore.storage.adapter import File, StorageAdapter, UploadOptions
from filestore.storage.context import Context

logger = logging.getLogger(__name__)

HEALTH_CHECK_OBJECT = "test-file.txt"
HEALTH_CHECK_CONTENT = b"test-file"


class Store:
    """
    Stable handle on the active storage adapter.

    Usage:
        store = Store(FilesystemStorage("./storage", domain="http://cdn"))
        store.upload("a.txt", BytesIO(b"hi"), 2)
        with store.download("a.txt") as body:
            data = body.read()
    """

    def __init__(self, adapter: StorageAdapter):
        self._adapter = adapter
        self._lock = threading.Lock()

    def set_adapter(self, adapter: StorageAdapter) -> None:
        """Replace the held adapter. Calls already running keep the old one."""
        with self._lock:
            previous = self._adapter
            self._adapter = adapter
        logger.info(
            "Store adapter replaced",
            extra={
                "previous_adapter": getattr(previous, "adapter_type", ""),
                "adapter_type": getattr(adapter, "adapter_type", ""),
            },
        )

    def get_adapter(self) -> StorageAdapter:
        with self._lock:
            return self._adapter

    @track_storage_operation("delete")
    def delete(self, *objects: str, ctx: Optional[Context] = None) -> None:
        """Delete one or more objects."""
        self.get_adapter().delete(*objects, ctx=ctx)
        record_deleted_objects(len(objects))

    def delete_many(self, objects: Sequence[str], ctx: Optional[Context] = None) -> None:
        """Delete every object of a sequence in one call."""
        self.delete(*objects, ctx=ctx)

    @track_storage_operation("get_sign_url")
    def get_sign_url(self, object: str, expire: Optional[int] = None,
                     ctx: Optional[Context] = None) -> str:
        return self.get_adapter().get_sign_url(object, expire, ctx=ctx)

    @track_storage_operation("is_exist")
    def is_exist(self, object: str, ctx: Optional[Context] = None) -> None:
        self.get_adapter().is_exist(object, ctx=ctx)

    @track_storage_operation("lists")
    def lists(self, prefix: str, ctx: Optional[Context] = None) -> List[File]:
        return self.get_adapter().lists(prefix, ctx=ctx)

    @track_storage_operation("upload")
    def upload(self, path: str, reader: BinaryIO, size: int,
               options: Union[UploadOptions, Mapping[str, str], None] = None,
               ctx: Optional[Context] = None) -> None:
        """
        Upload a stream.

        Args:
            path: Destination key
            reader: File-like object
            size: Number of bytes (negative = unknown)
            options: UploadOptions or a header mapping such as
                {"Content-Type": "image/png", "owner": "u1"}
            ctx: Caller context
        """
        adapter = self.get_adapter()
        logger.debug(
            "Uploading object",
            extra={"object_name": path, "size": size, "adapter_type": adapter.adapter_type},
        )
        adapter.upload(path, reader, size, UploadOptions.coerce(options), ctx=ctx)
        record_upload_bytes(size)

    @track_storage_operation("download")
    def download(self, object: str, ctx: Optional[Context] = None) -> BinaryIO:
        return self.get_adapter().download(object, ctx=ctx)

    @track_storage_operation("get_info")
    def get_info(self, object: str, ctx: Optional[Context] = None) -> File:
        return self.get_adapter().get_info(object, ctx=ctx)

    def ping_test(self, ctx: Optional[Context] = None) -> None:
        """
        End-to-end health check: upload, check and delete a marker object.

        The first failing step is raised and the remaining steps are skipped,
        so a marker uploaded before a failed existence check stays behind.
        """
        adapter_type = self.get_adapter().adapter_type
        with PerformanceTracker("ping_test", logger, adapter_type=adapter_type):
            content = HEALTH_CHECK_CONTENT
            self.upload(HEALTH_CHECK_OBJECT, BytesIO(content), len(content), ctx=ctx)
            self.is_exist(HEALTH_CHECK_OBJECT, ctx=ctx)
            self.delete(HEALTH_CHECK_OBJECT, ctx=ctx)
