"""Engine configuration loading.

Configuration lives in ``terminus.yaml``; every key is optional. Resolution
order for each setting:

1. Environment variable (``TERMINUS_STORAGE_BACKEND``, ``TERMINUS_STORAGE_PATH``,
   ``TERMINUS_CONTENT_PATH``)
2. ``terminus.yaml``
3. Defaults below

Relative paths in the file are resolved against the file's directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from terminus.graph.redirects import DEFAULT_MAX_HOPS
from terminus.persistence.manager import DEFAULT_AUTOSAVE_INTERVAL_SECONDS, DEFAULT_SAVE_KEY

CONFIG_FILENAME = "terminus.yaml"
DEFAULT_CONTENT_PATH = "content.yaml"
DEFAULT_STORAGE_BACKEND = "sqlite"
DEFAULT_STORAGE_PATH = "saves/terminus.db"


@dataclass
class StorageConfig:
    """Where and how save slots are stored.

    Attributes:
        backend: ``memory`` or ``sqlite``.
        path: SQLite database file (ignored by the memory backend).
        key: Primary save slot key.
        backup_key: Backup save slot key.
        quota_bytes: Size cap for the memory backend, if any.
    """

    backend: str = DEFAULT_STORAGE_BACKEND
    path: Path = field(default_factory=lambda: Path(DEFAULT_STORAGE_PATH))
    key: str = DEFAULT_SAVE_KEY
    backup_key: str = f"{DEFAULT_SAVE_KEY}-backup"
    quota_bytes: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> StorageConfig:
        """Create config from dictionary.

        Args:
            data: The ``storage`` section of ``terminus.yaml``.
            base_dir: Directory relative paths are resolved against.

        Returns:
            StorageConfig instance.
        """
        key = str(data.get("key", DEFAULT_SAVE_KEY))
        quota = data.get("quota_bytes")
        return cls(
            backend=str(data.get("backend", DEFAULT_STORAGE_BACKEND)),
            path=_resolve(data.get("path", DEFAULT_STORAGE_PATH), base_dir),
            key=key,
            backup_key=str(data.get("backup_key", f"{key}-backup")),
            quota_bytes=int(quota) if quota is not None else None,
        )


@dataclass
class EngineConfig:
    """Configuration for a Terminus engine instance."""

    content_path: Path = field(default_factory=lambda: Path(DEFAULT_CONTENT_PATH))
    storage: StorageConfig = field(default_factory=StorageConfig)
    autosave_interval_seconds: float = DEFAULT_AUTOSAVE_INTERVAL_SECONDS
    redirect_max_hops: int = DEFAULT_MAX_HOPS

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> EngineConfig:
        """Create config from dictionary.

        Args:
            data: Parsed ``terminus.yaml`` contents.
            base_dir: Directory relative paths are resolved against.

        Returns:
            EngineConfig instance.
        """
        storage_data = data.get("storage") or {}
        return cls(
            content_path=_resolve(data.get("content_path", DEFAULT_CONTENT_PATH), base_dir),
            storage=StorageConfig.from_dict(dict(storage_data), base_dir),
            autosave_interval_seconds=float(
                data.get("autosave_interval_seconds", DEFAULT_AUTOSAVE_INTERVAL_SECONDS)
            ),
            redirect_max_hops=int(data.get("redirect_max_hops", DEFAULT_MAX_HOPS)),
        )

    def apply_env(self) -> EngineConfig:
        """Apply ``TERMINUS_*`` environment overrides in place."""
        if backend := os.getenv("TERMINUS_STORAGE_BACKEND"):
            self.storage.backend = backend
        if storage_path := os.getenv("TERMINUS_STORAGE_PATH"):
            self.storage.path = Path(storage_path)
        if content_path := os.getenv("TERMINUS_CONTENT_PATH"):
            self.content_path = Path(content_path)
        return self


def _resolve(value: Any, base_dir: Path | None) -> Path:
    path = Path(str(value))
    if base_dir is not None and not path.is_absolute():
        return base_dir / path
    return path


class ConfigError(Exception):
    """Raised when engine configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load engine config at {path}: {reason}")


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine configuration from ``terminus.yaml``.

    Args:
        config_path: Path to the config file. Defaults to ``terminus.yaml``
            in the working directory.

    Returns:
        EngineConfig with environment overrides applied. Defaults are used
        when the file does not exist.

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    config_path = config_path or Path(CONFIG_FILENAME)

    if not config_path.exists():
        return EngineConfig().apply_env()

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(config_path, "Expected a mapping at the top level")

        config = EngineConfig.from_dict(dict(data), base_dir=config_path.parent)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e

    return config.apply_env()
