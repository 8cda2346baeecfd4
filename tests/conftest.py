# Test configuration

import logging
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from filestore.config.settings import get_settings
from filestore.common import metrics
from filestore.storage import factory
from filestore.storage.filesystem import FilesystemStorage
from filestore.storage.manager import reset_default_store
from filestore.storage.memory import MemoryStorage
from filestore.storage.store import Store


@pytest.fixture(autouse=True)
def clean_globals(monkeypatch):
    """Isolate process-wide state (default store, registry, settings) per test."""
    reset_default_store()
    get_settings.cache_clear()
    monkeypatch.setattr(factory, "_adapters", dict(factory._adapters))
    metrics.set_metrics_enabled(True)
    yield
    reset_default_store()
    get_settings.cache_clear()


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers and level after a test reconfigures logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def local_storage(tmp_path):
    """Create a temporary filesystem storage instance."""
    return FilesystemStorage(str(tmp_path), domain="http://localhost/files")


@pytest.fixture
def memory_storage():
    return MemoryStorage(domain="http://cdn.example.com")


@pytest.fixture
def memory_store(memory_storage):
    return Store(memory_storage)
