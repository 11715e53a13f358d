"""Persistence error types.

Validation and storage failures are recovered inside the PersistenceManager:
``load()`` falls back to the backup slot and then to "no save", ``save()``
returns False. These types exist so each failure path can be logged and
tested precisely.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class PersistenceError(Exception):
    """Base class for persistence failures."""


@dataclass
class SaveValidationError(PersistenceError):
    """A save (or a state about to be saved) is structurally invalid.

    Attributes:
        violations: One entry per failed check.
        source: Storage key or description of where the data came from.
    """

    violations: list[str] = field(default_factory=list)
    source: str = ""

    def __post_init__(self) -> None:
        msg = f"Invalid save data from {self.source or 'unknown source'}"
        if self.violations:
            msg += f": {len(self.violations)} violation(s)"
        super().__init__(msg)

    def __str__(self) -> str:
        lines = [f"Invalid save data from {self.source or 'unknown source'}:"]
        for v in self.violations[:5]:
            lines.append(f"  - {v}")
        if len(self.violations) > 5:
            lines.append(f"  - ... and {len(self.violations) - 5} more")
        return "\n".join(lines)


class SaveMigrationError(PersistenceError):
    """A save cannot be migrated to the current schema version."""


class StorageError(PersistenceError):
    """Base class for storage backend failures."""


class StorageReadError(StorageError):
    """The backend failed to read a key."""


class StorageWriteError(StorageError):
    """The backend failed to write or remove a key."""


class StorageQuotaError(StorageWriteError):
    """A write would exceed the backend's storage quota."""

    def __init__(self, key: str, size: int, quota: int) -> None:
        self.key = key
        self.size = size
        self.quota = quota
        super().__init__(f"Writing {size} bytes to '{key}' exceeds quota of {quota} bytes")
