"""Persistence package - save slots, validation, migration and recovery."""

from terminus.persistence.codec import (
    deserialize,
    dumps,
    parse_save,
    serialize,
    validate_game_state,
)
from terminus.persistence.errors import (
    PersistenceError,
    SaveMigrationError,
    SaveValidationError,
    StorageError,
    StorageQuotaError,
    StorageReadError,
    StorageWriteError,
)
from terminus.persistence.manager import (
    DEFAULT_SAVE_KEY,
    LoadOutcome,
    PersistenceManager,
    SaveMetadata,
)
from terminus.persistence.migrations import migrate_save_payload, normalize_player_id
from terminus.persistence.storage import (
    MemorySaveStorage,
    SaveStorage,
    SqliteSaveStorage,
    create_storage,
)

__all__ = [
    "DEFAULT_SAVE_KEY",
    "LoadOutcome",
    "MemorySaveStorage",
    "PersistenceError",
    "PersistenceManager",
    "SaveMetadata",
    "SaveMigrationError",
    "SaveStorage",
    "SaveValidationError",
    "SqliteSaveStorage",
    "StorageError",
    "StorageQuotaError",
    "StorageReadError",
    "StorageWriteError",
    "create_storage",
    "deserialize",
    "dumps",
    "migrate_save_payload",
    "normalize_player_id",
    "parse_save",
    "serialize",
    "validate_game_state",
]
