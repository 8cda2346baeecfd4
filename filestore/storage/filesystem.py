"""
Filesystem storage backend implementation.

Stores objects as plain files under a root directory. An object key maps
directly to a relative path below the root:
- "avatars/u1.png" -> {root}/avatars/u1.png
"""

import logging
import mimetypes
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, List, Optional

from filestore.storage.adapter import File, StorageAdapter, UploadOptions
from filestore.storage.configs import LocalConfig, load_adapter_config
from filestore.storage.context import Context
from filestore.storage.errors import (
    BatchDeleteError,
    ObjectNotFoundError,
    StorageBackendError,
    StorageError,
)
from filestore.storage.paths import object_rel, public_url

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DIR_MODE = 0o776
FILE_MODE = 0o666


class FilesystemStorage(StorageAdapter):
    """
    Filesystem-based storage implementation.

    Signed URLs are not supported; get_sign_url always returns the public URL
    under the configured domain.
    """

    adapter_type = "local"

    def __init__(self, base_path: str = "./storage", domain: str = "", is_dev: bool = False):
        """
        Initialize filesystem storage.

        Args:
            base_path: Root directory for all objects
            domain: Public domain serving the root directory
            is_dev: Development mode flag (informational)
        """
        self.base_path = Path(base_path).resolve()
        self.domain = domain
        self.is_dev = is_dev
        self._ensure_root()

    @classmethod
    def from_config(cls, config: Any) -> "FilesystemStorage":
        cfg = load_adapter_config(LocalConfig, cls.adapter_type, config)
        return cls(base_path=cfg.path, domain=cfg.domain, is_dev=cfg.is_dev)

    def _ensure_root(self) -> None:
        """Create the root directory if it doesn't exist."""
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            os.chmod(self.base_path, DIR_MODE)
        except OSError as e:
            raise StorageError(f"Failed to prepare storage root {self.base_path}: {e}") from e

    def _key_to_path(self, key: str) -> Path:
        """
        Convert an object key to a filesystem path.

        Args:
            key: Object key

        Returns:
            Absolute Path object

        Raises:
            StorageError: If the key escapes the storage root
        """
        relative = object_rel(key)
        path = (self.base_path / relative).resolve()
        if path != self.base_path and self.base_path not in path.parents:
            raise StorageError(f"Object key escapes storage root: {key}")
        return path

    def _path_to_key(self, path: Path) -> str:
        return path.relative_to(self.base_path).as_posix()

    def _describe(self, path: Path, key: str) -> File:
        stat = path.stat()
        header = {}
        content_type, _ = mimetypes.guess_type(path.name)
        if content_type:
            header["Content-Type"] = content_type
        return File(
            mod_time=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            name=key,
            size=stat.st_size,
            is_dir=path.is_dir(),
            header=header,
        )

    def upload(self, path: str, reader: BinaryIO, size: int,
               options: Optional[UploadOptions] = None,
               ctx: Optional[Context] = None) -> None:
        """Write a stream to a file, replacing any existing file atomically."""
        if ctx is not None:
            ctx.raise_if_done()
        target = self._key_to_path(path)
        tmp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            with os.fdopen(fd, "wb") as f:
                while True:
                    if ctx is not None:
                        ctx.raise_if_done()
                    chunk = reader.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    f.write(chunk)
            os.chmod(tmp_name, FILE_MODE)
            os.replace(tmp_name, target)
            tmp_name = None
        except StorageError:
            raise
        except OSError as e:
            raise StorageBackendError("upload", path, e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def download(self, object: str, ctx: Optional[Context] = None) -> BinaryIO:
        """Open a file for reading."""
        if ctx is not None:
            ctx.raise_if_done()
        path = self._key_to_path(object)
        if not path.is_file():
            raise ObjectNotFoundError(object)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(object, e) from e
        except OSError as e:
            raise StorageBackendError("download", object, e) from e

    def is_exist(self, object: str, ctx: Optional[Context] = None) -> None:
        """Check that a file exists."""
        if ctx is not None:
            ctx.raise_if_done()
        if not self._key_to_path(object).exists():
            raise ObjectNotFoundError(object)

    def get_info(self, object: str, ctx: Optional[Context] = None) -> File:
        """Stat a file."""
        if ctx is not None:
            ctx.raise_if_done()
        path = self._key_to_path(object)
        try:
            return self._describe(path, object_rel(object))
        except FileNotFoundError as e:
            raise ObjectNotFoundError(object, e) from e
        except OSError as e:
            raise StorageBackendError("stat", object, e) from e

    def delete(self, *objects: str, ctx: Optional[Context] = None) -> None:
        """Delete files; missing files are skipped."""
        if not objects:
            return
        failures = []
        for obj in objects:
            if ctx is not None:
                ctx.raise_if_done()
            try:
                path = self._key_to_path(obj)
                if path == self.base_path:
                    raise StorageError(f"Refusing to delete storage root: {obj}")
                path.unlink()
                self._prune_empty_parents(path.parent)
            except FileNotFoundError:
                continue
            except (StorageError, OSError) as e:
                logger.warning(f"Failed to delete {obj}: {e}")
                failures.append((obj, str(e)))
        if failures:
            raise BatchDeleteError(failures)

    def _prune_empty_parents(self, parent: Path) -> None:
        """Remove empty directories between a deleted file and the root."""
        while parent != self.base_path and self.base_path in parent.parents:
            try:
                if any(parent.iterdir()):
                    break
                parent.rmdir()
            except OSError:
                # Directory not empty or already removed
                break
            parent = parent.parent

    def lists(self, prefix: str, ctx: Optional[Context] = None) -> List[File]:
        """List files whose key starts with a prefix."""
        if ctx is not None:
            ctx.raise_if_done()
        prefix = object_rel(prefix)
        # Walk only below the deepest directory named by the prefix.
        start = self.base_path
        if "/" in prefix:
            start = self._key_to_path(prefix.rsplit("/", 1)[0])
        if not start.is_dir():
            return []

        files = []
        try:
            for dirpath, _, filenames in os.walk(start):
                if ctx is not None:
                    ctx.raise_if_done()
                for filename in sorted(filenames):
                    if filename.startswith(".upload-"):
                        continue
                    path = Path(dirpath) / filename
                    key = self._path_to_key(path)
                    if key.startswith(prefix):
                        files.append(self._describe(path, key))
        except OSError as e:
            raise StorageBackendError("list", prefix, e) from e
        files.sort(key=lambda f: f.name)
        return files

    def get_sign_url(self, object: str, expire: Optional[int] = None,
                     ctx: Optional[Context] = None) -> str:
        """Return the public URL; local files cannot be signed."""
        return public_url(self.domain, object)
