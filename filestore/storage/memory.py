"""
In-memory storage backend.

Thread-safe implementation that keeps objects in a dict. Useful for tests and
for running an application without any external storage.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, BinaryIO, Dict, List, Optional

from filestore.storage.adapter import File, StorageAdapter, UploadOptions
from filestore.storage.configs import MemoryConfig, load_adapter_config
from filestore.storage.context import Context
from filestore.storage.errors import ObjectNotFoundError
from filestore.storage.paths import object_rel, public_url


@dataclass
class _Entry:
    data: bytes
    mod_time: datetime
    header: Dict[str, str] = field(default_factory=dict)


class MemoryStorage(StorageAdapter):
    """
    In-process object store.

    Objects live only as long as the adapter instance. Headers passed at
    upload time, including user metadata, are returned by get_info.
    """

    adapter_type = "memory"

    def __init__(self, domain: str = "memory://"):
        self.domain = domain
        self._objects: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Any) -> "MemoryStorage":
        cfg = load_adapter_config(MemoryConfig, cls.adapter_type, config or {})
        return cls(domain=cfg.domain)

    def upload(self, path: str, reader: BinaryIO, size: int,
               options: Optional[UploadOptions] = None,
               ctx: Optional[Context] = None) -> None:
        if ctx is not None:
            ctx.raise_if_done()
        data = reader.read() if size < 0 else reader.read(size)
        header = UploadOptions.coerce(options).to_headers()
        entry = _Entry(data=data, mod_time=datetime.now(timezone.utc), header=header)
        with self._lock:
            self._objects[object_rel(path)] = entry

    def download(self, object: str, ctx: Optional[Context] = None) -> BinaryIO:
        entry = self._get(object, ctx)
        return BytesIO(entry.data)

    def get_info(self, object: str, ctx: Optional[Context] = None) -> File:
        entry = self._get(object, ctx)
        return self._describe(object_rel(object), entry)

    def delete(self, *objects: str, ctx: Optional[Context] = None) -> None:
        if not objects:
            return
        if ctx is not None:
            ctx.raise_if_done()
        with self._lock:
            for obj in objects:
                self._objects.pop(object_rel(obj), None)

    def lists(self, prefix: str, ctx: Optional[Context] = None) -> List[File]:
        if ctx is not None:
            ctx.raise_if_done()
        prefix = object_rel(prefix)
        with self._lock:
            snapshot = sorted(self._objects.items())
        return [
            self._describe(key, entry)
            for key, entry in snapshot
            if key.startswith(prefix)
        ]

    def get_sign_url(self, object: str, expire: Optional[int] = None,
                     ctx: Optional[Context] = None) -> str:
        return public_url(self.domain, object)

    def _get(self, object: str, ctx: Optional[Context]) -> _Entry:
        if ctx is not None:
            ctx.raise_if_done()
        with self._lock:
            entry = self._objects.get(object_rel(object))
        if entry is None:
            raise ObjectNotFoundError(object)
        return entry

    @staticmethod
    def _describe(key: str, entry: _Entry) -> File:
        return File(
            mod_time=entry.mod_time,
            name=key,
            size=len(entry.data),
            is_dir=len(entry.data) == 0,
            header=dict(entry.header),
        )
