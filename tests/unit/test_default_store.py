"""
Unit tests for the process-wide default store.
"""

import io
import logging
import threading

import pytest

import filestore
from filestore.common import metrics
from filestore.common.logging_config import StructuredFormatter
from filestore.config.settings import Settings
from filestore.storage import manager
from filestore.storage.errors import (
    StorageConfigError,
    StoreNotInitializedError,
    UnknownAdapterError,
)
from filestore.storage.factory import register_adapter
from filestore.storage.filesystem import FilesystemStorage
from filestore.storage.memory import MemoryStorage


class TestInit:
    """Test publishing the default store."""

    def test_not_initialized(self):
        assert not manager.is_initialized()
        with pytest.raises(StoreNotInitializedError, match="init"):
            manager.get_default_store()

    @pytest.mark.parametrize("call", [
        lambda: manager.upload("a", io.BytesIO(b"x"), 1),
        lambda: manager.download("a"),
        lambda: manager.delete("a"),
        lambda: manager.deletes(["a"]),
        lambda: manager.lists(""),
        lambda: manager.get_info("a"),
        lambda: manager.is_exist("a"),
        lambda: manager.get_sign_url("a"),
        lambda: manager.ping_test(),
    ])
    def test_free_functions_require_init(self, call):
        with pytest.raises(StoreNotInitializedError):
            call()

    def test_init_memory(self):
        store = manager.init("memory", {"domain": "http://cdn"})

        assert manager.is_initialized()
        assert manager.get_default_store() is store
        assert isinstance(store.get_adapter(), MemoryStorage)

    def test_init_local(self, tmp_path):
        manager.init("local", {"path": str(tmp_path), "domain": "http://localhost"})

        assert isinstance(manager.get_default_store().get_adapter(), FilesystemStorage)

    def test_failed_init_keeps_previous_store(self):
        store = manager.init("memory", {})

        with pytest.raises(UnknownAdapterError):
            manager.init("ftp", {})
        with pytest.raises(StorageConfigError):
            manager.init("local", {"path": "./x"})

        assert manager.get_default_store() is store

    def test_failed_first_init_leaves_uninitialized(self):
        with pytest.raises(UnknownAdapterError):
            manager.init("ftp", {})

        assert not manager.is_initialized()

    def test_reinit_replaces_store(self):
        first = manager.init("memory", {})
        second = manager.init("memory", {})

        assert first is not second
        assert manager.get_default_store() is second

    def test_init_with_custom_adapter(self):
        adapter = MemoryStorage(domain="http://custom")
        register_adapter("custom", lambda config: adapter)

        manager.init("custom", None)

        assert manager.get_sign_url("a.txt") == "http://custom/a.txt"

    def test_concurrent_readers_see_a_store(self):
        manager.init("memory", {})
        errors = []

        def reader():
            try:
                for _ in range(100):
                    manager.get_default_store()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for _ in range(20):
            manager.init("memory", {})
        for t in threads:
            t.join()

        assert errors == []


class TestInitFromSettings:
    """Test initialization from application settings."""

    def test_local_backend(self, tmp_path):
        settings = Settings(storage_backend="local", storage_path=str(tmp_path))

        store = manager.init_from_settings(settings)

        adapter = store.get_adapter()
        assert isinstance(adapter, FilesystemStorage)
        assert adapter.base_path == tmp_path.resolve()
        assert adapter.domain == "http://localhost:8000/storage"

    def test_backend_name_is_case_insensitive(self):
        manager.init_from_settings(Settings(storage_backend="MEMORY"))

        assert isinstance(manager.get_default_store().get_adapter(), MemoryStorage)

    def test_metrics_flag_applied(self):
        manager.init_from_settings(Settings(storage_backend="memory", metrics_enabled=False))

        assert not metrics.metrics_enabled()

    def test_configure_logging(self, restore_root_logger):
        settings = Settings(storage_backend="memory", log_level="DEBUG", log_json=True)

        manager.init_from_settings(settings, configure_logging=True)

        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FILESTORE_STORAGE_BACKEND", "local")
        monkeypatch.setenv("FILESTORE_STORAGE_PATH", str(tmp_path))
        monkeypatch.setenv("FILESTORE_STORAGE_DOMAIN", "https://files.example.com")

        manager.init_from_settings()

        assert manager.get_sign_url("a.txt") == "https://files.example.com/a.txt"


class TestFreeFunctions:
    """Test module-level operations against the default store."""

    @pytest.fixture(autouse=True)
    def default_store(self):
        return manager.init("memory", {"domain": "http://cdn"})

    def test_round_trip(self):
        filestore.upload("docs/a.txt", io.BytesIO(b"hello"), 5, {"Content-Type": "text/plain"})

        filestore.is_exist("docs/a.txt")
        assert filestore.download("docs/a.txt").read() == b"hello"
        assert filestore.get_info("docs/a.txt").header["Content-Type"] == "text/plain"
        assert [f.name for f in filestore.lists("docs/")] == ["docs/a.txt"]
        assert filestore.get_sign_url("docs/a.txt", 60) == "http://cdn/docs/a.txt"

    def test_delete_and_deletes(self):
        for key in ("a", "b", "c"):
            filestore.upload(key, io.BytesIO(b"x"), 1)

        filestore.delete("a")
        filestore.deletes(["b", "c"])

        assert filestore.lists("") == []

    def test_ping_test(self):
        filestore.ping_test()

    def test_swapping_adapter_on_default_store(self):
        replacement = MemoryStorage(domain="http://other")

        manager.get_default_store().set_adapter(replacement)

        assert filestore.get_sign_url("a") == "http://other/a"
