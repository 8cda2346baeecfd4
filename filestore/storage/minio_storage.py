"""MinIO implementation of the StorageAdapter interface."""

import io
import logging
from datetime import timedelta
from typing import Any, BinaryIO, Dict, List, Optional

from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import S3Error

from filestore.storage.adapter import File, StorageAdapter, UploadOptions
from filestore.storage.configs import MinioConfig, load_adapter_config
from filestore.storage.context import Context, run_with_context
from filestore.storage.errors import (
    BatchDeleteError,
    ObjectNotFoundError,
    StorageBackendError,
    StorageConfigError,
)
from filestore.storage.paths import (
    SEVEN_DAYS,
    normalize_domain,
    object_rel,
    public_url,
    substitute_domain,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchObject", "ResourceNotFound"}
# Part size for streams of unknown length.
UNKNOWN_SIZE_PART = 10 * 1024 * 1024


def _release_response(response) -> None:
    response.close()
    response.release_conn()


class _ObjectStream(io.RawIOBase):
    """Readable stream over a MinIO response that releases the connection on close."""

    def __init__(self, response):
        self._response = response

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._response.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if not self.closed:
            try:
                self._response.close()
                self._response.release_conn()
            finally:
                super().close()


class MinioStorage(StorageAdapter):
    """Handles object storage operations using MinIO."""

    adapter_type = "minio"

    def __init__(self, client: Minio, bucket_name: str, domain: str, expire: int = 0):
        self._client = client
        self._bucket_name = bucket_name
        self.domain = normalize_domain(domain)
        self.expire = expire

    @classmethod
    def from_config(cls, config: Any) -> "MinioStorage":
        cfg = load_adapter_config(MinioConfig, cls.adapter_type, config)
        domain = cfg.domain
        if not domain:
            scheme = "https" if cfg.secure else "http"
            domain = f"{scheme}://{cfg.endpoint}"
        try:
            client = Minio(
                endpoint=cfg.endpoint,
                access_key=cfg.access_key,
                secret_key=cfg.secret_key,
                secure=cfg.secure,
                region=cfg.region,
            )
        except ValueError as e:
            # e.g. a scheme or path in the endpoint
            raise StorageConfigError(cls.adapter_type, str(e)) from e
        return cls(client, cfg.bucket, domain, cfg.expire)

    @staticmethod
    def _is_not_found(error: S3Error) -> bool:
        return error.code in NOT_FOUND_CODES

    def upload(self, path: str, reader: BinaryIO, size: int,
               options: Optional[UploadOptions] = None,
               ctx: Optional[Context] = None) -> None:
        options = UploadOptions.coerce(options)
        key = object_rel(path)
        metadata: Dict[str, str] = {}
        if options.content_disposition:
            metadata["Content-Disposition"] = options.content_disposition
        if options.content_encoding:
            metadata["Content-Encoding"] = options.content_encoding
        metadata.update(options.metadata)

        try:
            run_with_context(
                ctx,
                self._client.put_object,
                bucket_name=self._bucket_name,
                object_name=key,
                data=reader,
                length=size if size >= 0 else -1,
                content_type=options.content_type or "application/octet-stream",
                metadata=metadata or None,
                part_size=0 if size >= 0 else UNKNOWN_SIZE_PART,
            )
        except S3Error as e:
            logger.exception(
                "MinIO upload failed",
                extra={"object_name": key, "bucket": self._bucket_name},
            )
            raise StorageBackendError("upload", key, e) from e
        logger.debug(
            "File uploaded to MinIO",
            extra={"object_name": key, "size": size, "bucket": self._bucket_name},
        )

    def delete(self, *objects: str, ctx: Optional[Context] = None) -> None:
        if not objects:
            return

        def _remove() -> List[tuple]:
            targets = [DeleteObject(object_rel(obj)) for obj in objects]
            failures = []
            # remove_objects is lazy; errors only surface while iterating
            for error in self._client.remove_objects(self._bucket_name, targets):
                if error.code in NOT_FOUND_CODES:
                    continue
                failures.append((error.name, f"{error.name}: {error.message}"))
            return failures

        try:
            failures = run_with_context(ctx, _remove)
        except S3Error as e:
            raise StorageBackendError("delete", ", ".join(objects), e) from e
        if failures:
            raise BatchDeleteError(failures)

    def get_sign_url(self, object: str, expire: Optional[int] = None,
                     ctx: Optional[Context] = None) -> str:
        exp = self.expire if expire is None else expire
        if exp <= 0:
            return public_url(self.domain, object)
        exp = min(exp, SEVEN_DAYS)
        key = object_rel(object)
        try:
            link = run_with_context(
                ctx,
                self._client.presigned_get_object,
                bucket_name=self._bucket_name,
                object_name=key,
                expires=timedelta(seconds=exp),
            )
        except S3Error as e:
            raise StorageBackendError("sign", key, e) from e
        return substitute_domain(link, self.domain)

    def download(self, object: str, ctx: Optional[Context] = None) -> BinaryIO:
        key = object_rel(object)
        try:
            response = run_with_context(
                ctx,
                self._client.get_object,
                bucket_name=self._bucket_name,
                object_name=key,
                on_abandon=_release_response,
            )
        except S3Error as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(key, e) from e
            raise StorageBackendError("download", key, e) from e
        return _ObjectStream(response)

    def get_info(self, object: str, ctx: Optional[Context] = None) -> File:
        key = object_rel(object)
        try:
            stat = run_with_context(
                ctx,
                self._client.stat_object,
                bucket_name=self._bucket_name,
                object_name=key,
            )
        except S3Error as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(key, e) from e
            raise StorageBackendError("stat", key, e) from e

        header = {}
        if stat.metadata:
            for name in stat.metadata.keys():
                header[name] = stat.metadata.get(name)
        return File(
            mod_time=stat.last_modified,
            name=key,
            size=stat.size,
            is_dir=stat.size == 0,
            header=header,
        )

    def lists(self, prefix: str, ctx: Optional[Context] = None) -> List[File]:
        prefix = object_rel(prefix)

        def _list() -> List[File]:
            files = []
            for obj in self._client.list_objects(
                self._bucket_name,
                prefix=prefix or None,
                recursive=True,
                include_user_meta=True,
            ):
                size = obj.size or 0
                header = {}
                if obj.metadata:
                    header = {str(k): str(v) for k, v in obj.metadata.items()}
                files.append(File(
                    mod_time=obj.last_modified,
                    name=object_rel(obj.object_name),
                    size=size,
                    is_dir=size == 0,
                    header=header,
                ))
            return files

        try:
            return run_with_context(ctx, _list)
        except S3Error as e:
            raise StorageBackendError("list", prefix, e) from e
