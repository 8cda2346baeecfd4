"""
Abstract base class for storage backends.

Defines the interface that all storage implementations must follow, plus the
value types exchanged through it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Dict, List, Mapping, Optional, Union

from filestore.storage.context import Context
from filestore.storage.errors import (
    ObjectNotFoundError,
    StorageCancelledError,
    StorageError,
)


@dataclass(frozen=True)
class File:
    """
    Descriptor of a stored object.

    `is_dir` is derived from `size == 0` on object stores, so an empty object
    is reported as a directory placeholder there.
    """
    mod_time: datetime
    name: str
    size: int
    is_dir: bool = False
    header: Dict[str, str] = field(default_factory=dict)


@dataclass
class UploadOptions:
    """Well-known object headers and opaque user metadata for an upload."""
    content_type: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "UploadOptions":
        """
        Build options from a header mapping.

        Content-Type, Content-Disposition and Content-Encoding are matched
        case-insensitively; every other key becomes user metadata.
        """
        options = cls()
        for key, value in headers.items():
            lowered = key.lower()
            if lowered == "content-type":
                options.content_type = value
            elif lowered == "content-disposition":
                options.content_disposition = value
            elif lowered == "content-encoding":
                options.content_encoding = value
            else:
                options.metadata[key] = value
        return options

    @classmethod
    def coerce(cls, value: Union["UploadOptions", Mapping[str, str], None]) -> "UploadOptions":
        if value is None:
            return cls()
        if isinstance(value, UploadOptions):
            return value
        return cls.from_headers(value)

    def to_headers(self) -> Dict[str, str]:
        """Flatten options back into a header mapping."""
        headers: Dict[str, str] = {}
        if self.content_type:
            headers["Content-Type"] = self.content_type
        if self.content_disposition:
            headers["Content-Disposition"] = self.content_disposition
        if self.content_encoding:
            headers["Content-Encoding"] = self.content_encoding
        headers.update(self.metadata)
        return headers


class StorageAdapter(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations (filesystem, MinIO, S3, etc.) must implement
    these methods to provide a consistent interface. A single adapter instance
    serves many concurrent calls, so implementations hold only immutable
    configuration and a thread-safe client handle.

    Every operation accepts a keyword-only `ctx`; None means no deadline and
    no cancellation.
    """

    adapter_type: str = ""

    @abstractmethod
    def delete(self, *objects: str, ctx: Optional[Context] = None) -> None:
        """
        Delete objects, best effort.

        Args:
            *objects: Object keys to delete (none = no-op)
            ctx: Caller context

        Raises:
            BatchDeleteError: If one or more objects could not be deleted
        """
        pass

    @abstractmethod
    def get_sign_url(self, object: str, expire: Optional[int] = None,
                     ctx: Optional[Context] = None) -> str:
        """
        Get a URL to fetch an object.

        Args:
            object: Object key
            expire: Lifetime in seconds; None uses the configured default,
                zero or negative returns the public URL
            ctx: Caller context

        Returns:
            Public or signed URL rooted at the configured domain
        """
        pass

    def is_exist(self, object: str, ctx: Optional[Context] = None) -> None:
        """
        Check that an object exists.

        Args:
            object: Object key
            ctx: Caller context

        Raises:
            ObjectNotFoundError: If the object is absent or cannot be inspected
        """
        try:
            self.get_info(object, ctx=ctx)
        except (ObjectNotFoundError, StorageCancelledError):
            raise
        except StorageError as e:
            raise ObjectNotFoundError(object, e) from e

    @abstractmethod
    def lists(self, prefix: str, ctx: Optional[Context] = None) -> List[File]:
        """
        List objects whose key starts with a prefix.

        Args:
            prefix: Key prefix (normalized like any key)
            ctx: Caller context

        Returns:
            List of File descriptors
        """
        pass

    @abstractmethod
    def upload(self, path: str, reader: BinaryIO, size: int,
               options: Optional[UploadOptions] = None,
               ctx: Optional[Context] = None) -> None:
        """
        Upload a stream to an object key, overwriting any existing object.

        Args:
            path: Destination key
            reader: File-like object to read from
            size: Number of bytes (negative = unknown)
            options: Object headers and user metadata
            ctx: Caller context

        Raises:
            StorageError: If the upload fails
        """
        pass

    @abstractmethod
    def download(self, object: str, ctx: Optional[Context] = None) -> BinaryIO:
        """
        Open an object for reading.

        The caller owns the returned stream and must close it.

        Raises:
            ObjectNotFoundError: If the object is absent
        """
        pass

    @abstractmethod
    def get_info(self, object: str, ctx: Optional[Context] = None) -> File:
        """
        Get the descriptor of one object.

        Raises:
            ObjectNotFoundError: If the object is absent
        """
        pass
