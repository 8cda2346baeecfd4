"""
Unit tests for the MinIO storage backend.
"""

import io
import threading
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from minio.error import S3Error

from filestore.storage.adapter import UploadOptions
from filestore.storage.context import Context
from filestore.storage.errors import (
    BatchDeleteError,
    ObjectNotFoundError,
    StorageBackendError,
    StorageConfigError,
    StorageDeadlineExceededError,
)
from filestore.storage.minio_storage import (
    UNKNOWN_SIZE_PART,
    MinioStorage,
)

MODIFIED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _s3_error(code, message="error"):
    return S3Error(
        code=code,
        message=message,
        resource="/files/key",
        request_id="req",
        host_id="host",
        response=Mock(),
    )


@pytest.fixture
def client():
    return Mock()


@pytest.fixture
def storage(client):
    return MinioStorage(client, "files", "https://cdn.example.com/", expire=0)


class TestFromConfig:
    """Test building the adapter from configuration."""

    def test_builds_client(self):
        with patch("filestore.storage.minio_storage.Minio") as minio_cls:
            storage = MinioStorage.from_config({
                "access_key": "ak",
                "secret_key": "sk",
                "endpoint": "minio:9000",
                "bucket": "files",
                "secure": True,
                "expire": 300,
            })

        minio_cls.assert_called_once_with(
            endpoint="minio:9000",
            access_key="ak",
            secret_key="sk",
            secure=True,
            region=None,
        )
        assert storage.domain == "https://minio:9000"
        assert storage.expire == 300

    def test_explicit_domain(self):
        with patch("filestore.storage.minio_storage.Minio"):
            storage = MinioStorage.from_config({
                "access_key": "ak",
                "secret_key": "sk",
                "endpoint": "minio:9000",
                "bucket": "files",
                "domain": "https://cdn.example.com/",
            })

        assert storage.domain == "https://cdn.example.com"

    @pytest.mark.parametrize("endpoint", ["http://localhost:9000", "localhost:9000/files"])
    def test_endpoint_with_scheme_or_path(self, endpoint):
        with pytest.raises(StorageConfigError, match="minio"):
            MinioStorage.from_config({
                "access_key": "ak",
                "secret_key": "sk",
                "endpoint": endpoint,
                "bucket": "files",
            })

    @pytest.mark.parametrize("missing", ["access_key", "secret_key", "endpoint", "bucket"])
    def test_missing_required_field(self, missing):
        config = {
            "access_key": "ak",
            "secret_key": "sk",
            "endpoint": "minio:9000",
            "bucket": "files",
        }
        del config[missing]

        with pytest.raises(StorageConfigError, match=missing):
            MinioStorage.from_config(config)


class TestUpload:
    """Test object upload."""

    def test_upload_known_size(self, storage, client):
        reader = io.BytesIO(b"hello")

        storage.upload("/docs/a.txt", reader, 5)

        client.put_object.assert_called_once_with(
            bucket_name="files",
            object_name="docs/a.txt",
            data=reader,
            length=5,
            content_type="application/octet-stream",
            metadata=None,
            part_size=0,
        )

    def test_upload_unknown_size(self, storage, client):
        storage.upload("a.bin", io.BytesIO(b"x"), -1)

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["length"] == -1
        assert kwargs["part_size"] == UNKNOWN_SIZE_PART

    def test_upload_headers_and_metadata(self, storage, client):
        options = UploadOptions.from_headers({
            "content-type": "image/png",
            "Content-Disposition": "attachment",
            "owner": "u1",
        })

        storage.upload("img.png", io.BytesIO(b"png"), 3, options)

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["content_type"] == "image/png"
        assert kwargs["metadata"] == {"Content-Disposition": "attachment", "owner": "u1"}

    def test_upload_failure(self, storage, client):
        client.put_object.side_effect = _s3_error("AccessDenied", "denied")

        with pytest.raises(StorageBackendError, match="upload") as exc_info:
            storage.upload("a.txt", io.BytesIO(b"x"), 1)

        assert isinstance(exc_info.value.cause, S3Error)


class TestDownloadAndInfo:
    """Test reading objects."""

    def test_download_stream(self, storage, client):
        response = Mock()
        response.read.side_effect = [b"hel", b"lo", b""]
        client.get_object.return_value = response

        with storage.download("./a.txt") as body:
            assert body.read() == b"hello"

        client.get_object.assert_called_once_with(bucket_name="files", object_name="a.txt")
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_late_response_is_released_after_deadline(self, storage, client):
        response = Mock()
        released = threading.Event()
        response.release_conn.side_effect = released.set

        def slow_get_object(**kwargs):
            time.sleep(0.3)
            return response

        client.get_object.side_effect = slow_get_object

        with pytest.raises(StorageDeadlineExceededError):
            storage.download("a.txt", ctx=Context(timeout=0.05))

        assert released.wait(5)
        response.close.assert_called_once()

    def test_download_missing(self, storage, client):
        client.get_object.side_effect = _s3_error("NoSuchKey")

        with pytest.raises(ObjectNotFoundError):
            storage.download("missing.txt")

    def test_get_info(self, storage, client):
        client.stat_object.return_value = SimpleNamespace(
            last_modified=MODIFIED,
            size=12,
            metadata={"Content-Type": "text/plain", "x-amz-meta-owner": "u1"},
        )

        info = storage.get_info("/docs/a.txt")

        assert info.name == "docs/a.txt"
        assert info.size == 12
        assert info.mod_time == MODIFIED
        assert info.is_dir is False
        assert info.header == {"Content-Type": "text/plain", "x-amz-meta-owner": "u1"}

    def test_get_info_zero_size_is_dir(self, storage, client):
        client.stat_object.return_value = SimpleNamespace(
            last_modified=MODIFIED, size=0, metadata=None
        )

        assert storage.get_info("folder/").is_dir is True

    def test_is_exist_missing(self, storage, client):
        client.stat_object.side_effect = _s3_error("NoSuchKey")

        with pytest.raises(ObjectNotFoundError):
            storage.is_exist("missing.txt")

    def test_is_exist_translates_backend_errors(self, storage, client):
        client.stat_object.side_effect = _s3_error("AccessDenied")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            storage.is_exist("a.txt")

        assert isinstance(exc_info.value.cause, StorageBackendError)


class TestDelete:
    """Test bulk delete."""

    def test_delete_nothing(self, storage, client):
        storage.delete()

        client.remove_objects.assert_not_called()

    def test_delete_objects(self, storage, client):
        client.remove_objects.return_value = iter([])

        with patch("filestore.storage.minio_storage.DeleteObject", side_effect=lambda name: name):
            storage.delete("/a.txt", "b.txt")

        client.remove_objects.assert_called_once_with("files", ["a.txt", "b.txt"])

    def test_delete_aggregates_failures(self, storage, client):
        client.remove_objects.return_value = iter([
            SimpleNamespace(code="AccessDenied", name="a.txt", message="denied"),
            SimpleNamespace(code="NoSuchKey", name="b.txt", message="missing"),
            SimpleNamespace(code="InternalError", name="c.txt", message="boom"),
        ])

        with pytest.raises(BatchDeleteError) as exc_info:
            storage.delete("a.txt", "b.txt", "c.txt")

        assert exc_info.value.failed_objects == ["a.txt", "c.txt"]
        assert str(exc_info.value) == "a.txt: denied; c.txt: boom"


class TestSignUrl:
    """Test URL generation."""

    def test_public_url_without_expire(self, storage, client):
        assert storage.get_sign_url("a b.txt") == "https://cdn.example.com/a%20b.txt"
        client.presigned_get_object.assert_not_called()

    def test_signed_url_uses_domain(self, storage, client):
        client.presigned_get_object.return_value = (
            "http://minio:9000/files/a.txt?X-Amz-Signature=abc"
        )

        url = storage.get_sign_url("a.txt", 60)

        assert url == "https://cdn.example.com/files/a.txt?X-Amz-Signature=abc"
        client.presigned_get_object.assert_called_once_with(
            bucket_name="files",
            object_name="a.txt",
            expires=timedelta(seconds=60),
        )

    def test_expire_capped_at_seven_days(self, storage, client):
        client.presigned_get_object.return_value = "https://cdn.example.com/files/a.txt?s=1"

        storage.get_sign_url("a.txt", 30 * 24 * 3600)

        assert client.presigned_get_object.call_args.kwargs["expires"] == timedelta(days=7)

    def test_configured_default_expire(self, client):
        storage = MinioStorage(client, "files", "https://cdn.example.com", expire=120)
        client.presigned_get_object.return_value = "https://cdn.example.com/files/a.txt?s=1"

        storage.get_sign_url("a.txt")

        assert client.presigned_get_object.call_args.kwargs["expires"] == timedelta(seconds=120)

    def test_explicit_zero_overrides_default(self, client):
        storage = MinioStorage(client, "files", "https://cdn.example.com", expire=120)

        assert storage.get_sign_url("a.txt", 0) == "https://cdn.example.com/a.txt"


class TestLists:
    """Test listing."""

    def test_lists(self, storage, client):
        client.list_objects.return_value = iter([
            SimpleNamespace(object_name="a/1.txt", size=3, last_modified=MODIFIED, metadata=None),
            SimpleNamespace(object_name="a/dir/", size=0, last_modified=MODIFIED,
                            metadata={"X-Amz-Meta-Owner": "u1"}),
        ])

        files = storage.lists("/a/")

        client.list_objects.assert_called_once_with(
            "files", prefix="a/", recursive=True, include_user_meta=True
        )
        assert [(f.name, f.size, f.is_dir) for f in files] == [
            ("a/1.txt", 3, False),
            ("a/dir/", 0, True),
        ]
        assert files[1].header == {"X-Amz-Meta-Owner": "u1"}

    def test_lists_whole_bucket(self, storage, client):
        client.list_objects.return_value = iter([])

        assert storage.lists("") == []
        assert client.list_objects.call_args.kwargs["prefix"] is None

    def test_lists_failure(self, storage, client):
        client.list_objects.side_effect = _s3_error("AccessDenied")

        with pytest.raises(StorageBackendError, match="list"):
            storage.lists("a/")
