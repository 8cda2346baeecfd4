"""
S3 storage backend implementation.

Works against AWS S3 and any S3-compatible service (Aliyun OSS, Tencent COS,
Huawei OBS, Baidu BOS, Ceph, ...) by pointing `endpoint` at the vendor's S3
endpoint.
"""

import logging
from typing import Any, BinaryIO, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from filestore.storage.adapter import File, StorageAdapter, UploadOptions
from filestore.storage.configs import S3Config, load_adapter_config
from filestore.storage.context import Context, run_with_context
from filestore.storage.errors import (
    BatchDeleteError,
    ObjectNotFoundError,
    StorageBackendError,
)
from filestore.storage.paths import (
    SEVEN_DAYS,
    normalize_domain,
    object_rel,
    public_url,
    substitute_domain,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
# DeleteObjects accepts at most this many keys per request.
DELETE_BATCH_SIZE = 1000


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _close_body(response: Dict[str, Any]) -> None:
    response["Body"].close()


class S3Storage(StorageAdapter):
    """
    S3-based storage implementation.

    Without a configured domain, signed URLs are returned exactly as the
    presigner built them (the signature covers the host), and public URLs
    are path-style URLs on the client's endpoint.
    """

    adapter_type = "s3"

    def __init__(self, client, bucket: str, domain: str = "", expire: int = 0):
        """
        Initialize S3 storage.

        Args:
            client: boto3 S3 client
            bucket: S3 bucket name
            domain: Public domain objects are served from ("" = client endpoint)
            expire: Default signed URL lifetime in seconds (0 = public URLs)
        """
        self.client = client
        self.bucket = bucket
        self.domain = normalize_domain(domain)
        self.expire = expire

    @classmethod
    def from_config(cls, config: Any) -> "S3Storage":
        cfg = load_adapter_config(S3Config, cls.adapter_type, config)
        session = boto3.session.Session(
            aws_access_key_id=cfg.access_key,
            aws_secret_access_key=cfg.secret_key,
            region_name=cfg.region,
        )
        client = session.client(
            "s3",
            endpoint_url=cls._endpoint_url(cfg),
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": cfg.addressing_style},
            ),
        )
        return cls(client, cfg.bucket, cfg.domain, cfg.expire)

    @staticmethod
    def _endpoint_url(cfg: S3Config) -> Optional[str]:
        """Vendor endpoints are often configured without a scheme."""
        if not cfg.endpoint:
            return None
        if "://" not in cfg.endpoint:
            return f"https://{cfg.endpoint}"
        return cfg.endpoint

    @property
    def public_domain(self) -> str:
        """Base of public URLs: the configured domain, else endpoint/bucket."""
        if self.domain:
            return self.domain
        return f"{normalize_domain(self.client.meta.endpoint_url)}/{self.bucket}"

    def upload(self, path: str, reader: BinaryIO, size: int,
               options: Optional[UploadOptions] = None,
               ctx: Optional[Context] = None) -> None:
        options = UploadOptions.coerce(options)
        key = object_rel(path)
        extra_args: Dict[str, Any] = {}
        if options.content_type:
            extra_args["ContentType"] = options.content_type
        if options.content_disposition:
            extra_args["ContentDisposition"] = options.content_disposition
        if options.content_encoding:
            extra_args["ContentEncoding"] = options.content_encoding
        if options.metadata:
            extra_args["Metadata"] = dict(options.metadata)

        try:
            run_with_context(
                ctx,
                self.client.upload_fileobj,
                reader,
                self.bucket,
                key,
                ExtraArgs=extra_args or None,
            )
        except (ClientError, BotoCoreError) as e:
            logger.exception(
                "S3 upload failed",
                extra={"object_name": key, "bucket": self.bucket},
            )
            raise StorageBackendError("upload", key, e) from e
        logger.debug(
            "File uploaded to S3",
            extra={"object_name": key, "size": size, "bucket": self.bucket},
        )

    def delete(self, *objects: str, ctx: Optional[Context] = None) -> None:
        if not objects:
            return
        keys = [object_rel(obj) for obj in objects]
        failures = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = run_with_context(
                    ctx,
                    self.client.delete_objects,
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                failures.extend((key, f"{key}: {e}") for key in batch)
                continue
            for error in response.get("Errors", []):
                if error.get("Code") in NOT_FOUND_CODES:
                    continue
                key = error.get("Key", "")
                failures.append((key, f"{key}: {error.get('Message', error.get('Code'))}"))
        if failures:
            raise BatchDeleteError(failures)

    def get_sign_url(self, object: str, expire: Optional[int] = None,
                     ctx: Optional[Context] = None) -> str:
        exp = self.expire if expire is None else expire
        if exp <= 0:
            return public_url(self.public_domain, object)
        exp = min(exp, SEVEN_DAYS)
        key = object_rel(object)
        try:
            link = run_with_context(
                ctx,
                self.client.generate_presigned_url,
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=exp,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageBackendError("sign", key, e) from e
        return substitute_domain(link, self.domain)

    def download(self, object: str, ctx: Optional[Context] = None) -> BinaryIO:
        key = object_rel(object)
        try:
            response = run_with_context(
                ctx,
                self.client.get_object,
                Bucket=self.bucket,
                Key=key,
                on_abandon=_close_body,
            )
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError(key, e) from e
            raise StorageBackendError("download", key, e) from e
        except BotoCoreError as e:
            raise StorageBackendError("download", key, e) from e
        return response["Body"]

    def get_info(self, object: str, ctx: Optional[Context] = None) -> File:
        key = object_rel(object)
        try:
            response = run_with_context(
                ctx, self.client.head_object, Bucket=self.bucket, Key=key
            )
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError(key, e) from e
            raise StorageBackendError("stat", key, e) from e
        except BotoCoreError as e:
            raise StorageBackendError("stat", key, e) from e

        header = dict(response.get("ResponseMetadata", {}).get("HTTPHeaders", {}))
        for name, value in response.get("Metadata", {}).items():
            header[f"x-amz-meta-{name}"] = value
        size = int(response.get("ContentLength", 0))
        return File(
            mod_time=response.get("LastModified"),
            name=key,
            size=size,
            is_dir=size == 0,
            header=header,
        )

    def lists(self, prefix: str, ctx: Optional[Context] = None) -> List[File]:
        prefix = object_rel(prefix)

        def _list() -> List[File]:
            files = []
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    size = int(item.get("Size", 0))
                    header = {}
                    if item.get("ETag"):
                        header["ETag"] = item["ETag"]
                    files.append(File(
                        mod_time=item.get("LastModified"),
                        name=object_rel(item["Key"]),
                        size=size,
                        is_dir=size == 0,
                        header=header,
                    ))
            return files

        try:
            return run_with_context(ctx, _list)
        except (ClientError, BotoCoreError) as e:
            raise StorageBackendError("list", prefix, e) from e
