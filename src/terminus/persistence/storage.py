"""Save storage backend protocol and implementations.

The SaveStorage protocol is the key/value surface the PersistenceManager
writes saves through. The backend is chosen once, at construction time:

- MemorySaveStorage keeps everything in a dict and can simulate a quota.
  It is the backend for tests and for sessions that should not touch disk.
- SqliteSaveStorage keeps keys in a single SQLite table using stdlib sqlite3.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from terminus.observability.logging import get_logger
from terminus.persistence.errors import (
    StorageQuotaError,
    StorageReadError,
    StorageWriteError,
)

if TYPE_CHECKING:
    from terminus.config import StorageConfig

log = get_logger(__name__)


@runtime_checkable
class SaveStorage(Protocol):
    """Storage backend protocol for saves.

    Implementations store opaque strings under string keys. A failed
    ``set_item`` must leave the previous value of the key in place.
    """

    def get_item(self, key: str) -> str | None:
        """Get the value stored under *key*, or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key* (create or overwrite)."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove *key*. Removing a missing key is not an error."""
        ...

    def keys(self) -> list[str]:
        """Return all stored keys."""
        ...


class MemorySaveStorage:
    """In-memory save storage.

    Args:
        quota_bytes: Optional cap on the total UTF-8 size of all values.
            Writes that would exceed it raise StorageQuotaError.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            size = len(value.encode("utf-8"))
            others = sum(
                len(v.encode("utf-8")) for k, v in self._items.items() if k != key
            )
            if others + size > self.quota_bytes:
                raise StorageQuotaError(key, others + size, self.quota_bytes)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def used_bytes(self) -> int:
        return sum(len(v.encode("utf-8")) for v in self._items.values())


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS saves (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class SqliteSaveStorage:
    """SQLite-backed save storage.

    Each ``set_item`` is a single autocommitted UPSERT, so a failed write
    leaves the previous row untouched.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        _conn: sqlite3.Connection | None = None,
    ) -> None:
        """Open or create a SQLite save database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
            _conn: Pre-existing connection (for testing). If provided,
                   *db_path* is ignored.
        """
        if _conn is not None:
            self._conn = _conn
            self._db_path: str = ":memory:"
        else:
            self._db_path = str(db_path)
            if isinstance(db_path, Path):
                db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._conn = sqlite3.connect(self._db_path, isolation_level=None)
            except sqlite3.Error as e:
                raise StorageReadError(f"Cannot open save database {self._db_path}: {e}") from e
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def get_item(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM saves WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(f"Failed to read '{key}': {e}") from e
        return None if row is None else str(row[0])

    def set_item(self, key: str, value: str) -> None:
        try:
            self._conn.execute(
                "INSERT INTO saves (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
                (key, value),
            )
        except sqlite3.Error as e:
            raise StorageWriteError(f"Failed to write '{key}': {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM saves WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageWriteError(f"Failed to remove '{key}': {e}") from e

    def keys(self) -> list[str]:
        try:
            rows = self._conn.execute("SELECT key FROM saves ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StorageReadError(f"Failed to list keys: {e}") from e
        return [str(row[0]) for row in rows]


STORAGE_BACKENDS = ("memory", "sqlite")


def create_storage(config: StorageConfig) -> SaveStorage:
    """Create the storage backend named by *config*.

    Args:
        config: Storage configuration.

    Returns:
        A SaveStorage implementation.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = config.backend.lower()
    if backend == "memory":
        log.debug("storage_backend_selected", backend="memory")
        return MemorySaveStorage(quota_bytes=config.quota_bytes)
    if backend == "sqlite":
        log.debug("storage_backend_selected", backend="sqlite", path=str(config.path))
        return SqliteSaveStorage(config.path)
    raise ValueError(
        f"Unknown storage backend '{config.backend}' (expected one of: "
        f"{', '.join(STORAGE_BACKENDS)})"
    )
