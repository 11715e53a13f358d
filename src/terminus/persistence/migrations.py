"""Save migration registry.

Migrations are forward-only and additive: each step fills in what a newer
schema expects and stamps the next version. Every step is idempotent, so a
payload that is already current passes through unchanged.

Version history:

- ``1.0.0``: original schema.
- ``1.1.0``: adds ``currentCharacterId``, ``mysteries``, ``sessionStartTime``.
- ``1.2.0``: player ids normalized to the ``player_`` prefix.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable
from typing import Any

from terminus.models.state import (
    INTRODUCTION_CHARACTER_ID,
    PLAYER_ID_PREFIX,
    SAVE_VERSION,
    default_mysteries,
)
from terminus.observability.logging import get_logger
from terminus.persistence.errors import SaveMigrationError

log = get_logger(__name__)

Payload = dict[str, Any]
Migration = Callable[[Payload], Payload]

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


def parse_version(version: object) -> tuple[int, int, int]:
    """Parse a ``MAJOR.MINOR.PATCH`` save version.

    Raises:
        SaveMigrationError: If the version is missing or malformed.
    """
    if not isinstance(version, str):
        raise SaveMigrationError(f"Save version missing or invalid: {version!r}")
    match = _VERSION_RE.match(version)
    if match is None:
        raise SaveMigrationError(f"Save version missing or invalid: {version!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def normalize_player_id(player_id: str) -> str:
    """Map a legacy player id onto the ``player_<token>`` scheme.

    Ids that already carry the prefix are returned unchanged.
    """
    if player_id.startswith(PLAYER_ID_PREFIX):
        return player_id
    token = re.sub(r"[^A-Za-z0-9]+", "_", player_id).strip("_")
    return f"{PLAYER_ID_PREFIX}{token or 'legacy'}"


def _infer_character(payload: Payload) -> str:
    """Guess the character owning the saved node from its id prefix."""
    node_id = payload.get("currentNodeId")
    known = [
        c.get("characterId")
        for c in payload.get("characters") or []
        if isinstance(c, dict) and isinstance(c.get("characterId"), str)
    ]
    if isinstance(node_id, str):
        for character_id in sorted(known, key=len, reverse=True):
            if node_id.startswith(f"{character_id}_"):
                return character_id
    return INTRODUCTION_CHARACTER_ID


def _migrate_1_0_0_to_1_1_0(payload: Payload) -> Payload:
    upgraded = dict(payload)
    if not upgraded.get("currentCharacterId"):
        upgraded["currentCharacterId"] = _infer_character(payload)
    mysteries = default_mysteries()
    if isinstance(upgraded.get("mysteries"), dict):
        mysteries.update(upgraded["mysteries"])
    upgraded["mysteries"] = mysteries
    if upgraded.get("sessionStartTime") is None:
        upgraded["sessionStartTime"] = upgraded.get("lastSaved", 0)
    upgraded["saveVersion"] = "1.1.0"
    return upgraded


def _migrate_1_1_0_to_1_2_0(payload: Payload) -> Payload:
    upgraded = dict(payload)
    player_id = upgraded.get("playerId")
    if isinstance(player_id, str):
        normalized = normalize_player_id(player_id)
        if normalized != player_id:
            log.info("player_id_normalized", old=player_id, new=normalized)
        upgraded["playerId"] = normalized
    upgraded["saveVersion"] = "1.2.0"
    return upgraded


MIGRATIONS: dict[str, Migration] = {
    "1.0.0": _migrate_1_0_0_to_1_1_0,
    "1.1.0": _migrate_1_1_0_to_1_2_0,
}


def needs_migration(payload: Payload, target_version: str = SAVE_VERSION) -> bool:
    return payload.get("saveVersion") != target_version


def migrate_save_payload(payload: Payload, target_version: str = SAVE_VERSION) -> Payload:
    """Migrate a camelCase save payload up to *target_version*.

    The input is not modified.

    Raises:
        SaveMigrationError: If the payload is newer than *target_version*,
            has a malformed version, or no migration path exists.
    """
    if not isinstance(payload, dict):
        raise SaveMigrationError("Save payload was not an object.")

    version = payload.get("saveVersion")
    current_v = parse_version(version)
    target_v = parse_version(target_version)
    if current_v > target_v:
        raise SaveMigrationError(
            f"Save schema {version} is newer than supported {target_version}."
        )

    current = copy.deepcopy(payload)
    while current_v < target_v:
        migrator = MIGRATIONS.get(str(version))
        if migrator is None:
            raise SaveMigrationError(f"No migration available for save schema {version}.")
        current = migrator(current)
        next_version = current.get("saveVersion")
        next_v = parse_version(next_version)
        if next_v <= current_v:
            raise SaveMigrationError(f"Migration from {version} did not advance the version.")
        log.debug("save_migrated", from_version=version, to_version=next_version)
        version, current_v = next_version, next_v

    return current
