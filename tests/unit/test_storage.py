"""Tests for save storage backends."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from terminus.config import StorageConfig
from terminus.persistence import (
    MemorySaveStorage,
    SaveStorage,
    SqliteSaveStorage,
    StorageQuotaError,
    StorageReadError,
    StorageWriteError,
    create_storage,
)


@pytest.fixture(params=["memory", "sqlite"])
def any_storage(request: pytest.FixtureRequest, tmp_path: Path) -> SaveStorage:
    if request.param == "memory":
        return MemorySaveStorage()
    return SqliteSaveStorage(tmp_path / "saves.db")


class TestSaveStorageProtocol:
    """Behaviour shared by every backend."""

    def test_is_runtime_checkable(self, any_storage: SaveStorage) -> None:
        """Each backend satisfies the SaveStorage protocol."""
        assert isinstance(any_storage, SaveStorage)

    def test_missing_key(self, any_storage: SaveStorage) -> None:
        """Reading a missing key returns None."""
        assert any_storage.get_item("nothing") is None

    def test_set_and_get(self, any_storage: SaveStorage) -> None:
        """Values are stored verbatim."""
        any_storage.set_item("k", '{"a": "ünïcode"}')
        assert any_storage.get_item("k") == '{"a": "ünïcode"}'

    def test_overwrite(self, any_storage: SaveStorage) -> None:
        """Setting an existing key replaces its value."""
        any_storage.set_item("k", "one")
        any_storage.set_item("k", "two")
        assert any_storage.get_item("k") == "two"
        assert any_storage.keys() == ["k"]

    def test_remove(self, any_storage: SaveStorage) -> None:
        """Removed keys are gone; removing twice is fine."""
        any_storage.set_item("k", "v")
        any_storage.remove_item("k")
        any_storage.remove_item("k")
        assert any_storage.get_item("k") is None

    def test_keys(self, any_storage: SaveStorage) -> None:
        """keys lists every stored key."""
        any_storage.set_item("b", "1")
        any_storage.set_item("a", "2")
        assert sorted(any_storage.keys()) == ["a", "b"]


class TestMemorySaveStorage:
    """Memory backend specifics."""

    def test_quota_exceeded(self) -> None:
        """A write past the quota raises and leaves the old value."""
        storage = MemorySaveStorage(quota_bytes=10)
        storage.set_item("k", "12345")
        with pytest.raises(StorageQuotaError) as exc_info:
            storage.set_item("k", "x" * 11)
        assert exc_info.value.quota == 10
        assert storage.get_item("k") == "12345"

    def test_quota_counts_other_keys(self) -> None:
        """The quota covers all keys together."""
        storage = MemorySaveStorage(quota_bytes=10)
        storage.set_item("a", "123456")
        with pytest.raises(StorageQuotaError):
            storage.set_item("b", "12345")

    def test_quota_error_is_write_error(self) -> None:
        """Quota failures are write failures."""
        assert issubclass(StorageQuotaError, StorageWriteError)

    def test_used_bytes(self) -> None:
        """Usage is measured in UTF-8 bytes."""
        storage = MemorySaveStorage()
        storage.set_item("k", "é")
        assert storage.used_bytes() == 2


class TestSqliteSaveStorage:
    """SQLite backend specifics."""

    def test_persists_across_connections(self, tmp_path: Path) -> None:
        """Data written by one instance is read by the next."""
        db = tmp_path / "saves.db"
        first = SqliteSaveStorage(db)
        first.set_item("k", "v")
        first.close()

        second = SqliteSaveStorage(db)
        assert second.get_item("k") == "v"
        second.close()

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """Missing parent directories are created."""
        db = tmp_path / "nested" / "dir" / "saves.db"
        storage = SqliteSaveStorage(db)
        assert db.parent.is_dir()
        assert storage.db_path == str(db)

    def test_in_memory_default(self) -> None:
        """The default database lives in memory."""
        storage = SqliteSaveStorage()
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"
        assert storage.db_path == ":memory:"

    def test_injected_connection(self) -> None:
        """An existing connection can be injected."""
        conn = sqlite3.connect(":memory:", isolation_level=None)
        storage = SqliteSaveStorage(_conn=conn)
        storage.set_item("k", "v")
        row = conn.execute("SELECT value FROM saves WHERE key = 'k'").fetchone()
        assert row == ("v",)

    def test_errors_are_translated(self) -> None:
        """sqlite3 errors surface as storage errors."""
        storage = SqliteSaveStorage()
        storage.close()
        with pytest.raises(StorageReadError):
            storage.get_item("k")
        with pytest.raises(StorageWriteError):
            storage.set_item("k", "v")


class TestCreateStorage:
    """Test backend selection."""

    def test_memory_backend(self) -> None:
        """The memory backend carries the quota."""
        storage = create_storage(StorageConfig(backend="memory", quota_bytes=100))
        assert isinstance(storage, MemorySaveStorage)
        assert storage.quota_bytes == 100

    def test_sqlite_backend(self, tmp_path: Path) -> None:
        """The sqlite backend opens the configured path."""
        storage = create_storage(StorageConfig(backend="SQLite", path=tmp_path / "s.db"))
        assert isinstance(storage, SqliteSaveStorage)
        assert (tmp_path / "s.db").exists()

    def test_unknown_backend(self) -> None:
        """Unknown backends are rejected."""
        with pytest.raises(ValueError, match="Unknown storage backend 'redis'"):
            create_storage(StorageConfig(backend="redis"))
