"""Common test fixtures for the notekeep persistence core."""

import tempfile
from pathlib import Path

import pytest

from notekeep.config import config
from notekeep.observability import metrics
from notekeep.storage.sql_store import SqlRecordStore
from tests.fakes import FakeRecordStore, RecordingListener


@pytest.fixture
def temp_dirs():
    """Create temporary directories for the database and exports."""
    with tempfile.TemporaryDirectory() as db_dir:
        with tempfile.TemporaryDirectory() as export_dir:
            yield Path(db_dir), Path(export_dir)


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    db_dir, export_dir = temp_dirs
    monkeypatch.setattr(config, "database_path", db_dir / "test_notekeep.db")
    monkeypatch.setattr(config, "export_dir", export_dir)
    monkeypatch.setattr(config, "in_memory_db", False)
    monkeypatch.setattr(config, "strict_commit", False)
    yield config


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def sql_store():
    """SQL record store over a private in-memory SQLite database."""
    store = SqlRecordStore(db_url="sqlite://")
    yield store
    store.close()


@pytest.fixture
def file_store(test_config):
    """SQL record store over a temporary database file."""
    store = SqlRecordStore()
    yield store
    store.close()


@pytest.fixture
def fake_store():
    """In-memory fake store with the system folders seeded."""
    return FakeRecordStore()


@pytest.fixture
def listener():
    """Listener recording every settings notification."""
    return RecordingListener()
