"""Tests for save schema migrations."""

from __future__ import annotations

import copy

import pytest

from terminus.models import SAVE_VERSION
from terminus.models.state import default_mysteries
from terminus.persistence import SaveMigrationError
from terminus.persistence.migrations import (
    MIGRATIONS,
    migrate_save_payload,
    needs_migration,
    normalize_player_id,
    parse_version,
)
from tests.fixtures.story_fixtures import make_legacy_payload


class TestMigrateSavePayload:
    """Test migrating payloads to the current version."""

    def test_legacy_save_reaches_current_version(self) -> None:
        """A 1.0.0 save is stamped with the current version."""
        migrated = migrate_save_payload(make_legacy_payload())
        assert migrated["saveVersion"] == SAVE_VERSION

    def test_adds_fields_from_1_1_0(self) -> None:
        """Missing fields are filled in additively."""
        migrated = migrate_save_payload(make_legacy_payload())
        assert migrated["currentCharacterId"] == "maya"
        assert migrated["mysteries"] == default_mysteries()
        assert migrated["sessionStartTime"] == migrated["lastSaved"]

    def test_keeps_progress(self) -> None:
        """Patterns, characters and flags are untouched."""
        legacy = make_legacy_payload()
        migrated = migrate_save_payload(legacy)
        assert migrated["patterns"] == legacy["patterns"]
        assert migrated["characters"] == legacy["characters"]
        assert migrated["globalFlags"] == legacy["globalFlags"]

    def test_input_not_modified(self) -> None:
        """The original payload is left as it was."""
        legacy = make_legacy_payload()
        before = copy.deepcopy(legacy)
        migrate_save_payload(legacy)
        assert legacy == before

    def test_idempotent(self) -> None:
        """Migrating a migrated payload changes nothing."""
        once = migrate_save_payload(make_legacy_payload())
        twice = migrate_save_payload(once)
        assert twice == once

    def test_unknown_node_prefix_defaults_to_introduction_character(self) -> None:
        """A node id matching no character falls back to Samuel."""
        migrated = migrate_save_payload(make_legacy_payload(currentNodeId="platform_seven"))
        assert migrated["currentCharacterId"] == "samuel"

    def test_existing_mysteries_kept(self) -> None:
        """Mystery progress already present survives migration."""
        migrated = migrate_save_payload(
            make_legacy_payload(mysteries={"samuelsPast": "hinted"})
        )
        assert migrated["mysteries"]["samuelsPast"] == "hinted"
        assert migrated["mysteries"]["platformSeven"] == "stable"

    def test_newer_version_rejected(self) -> None:
        """A save from a newer release is a migration failure."""
        with pytest.raises(SaveMigrationError, match="newer than supported"):
            migrate_save_payload(make_legacy_payload(saveVersion="9.0.0"))

    def test_malformed_version_rejected(self) -> None:
        """A version that is not MAJOR.MINOR.PATCH is rejected."""
        with pytest.raises(SaveMigrationError, match="missing or invalid"):
            migrate_save_payload(make_legacy_payload(saveVersion="one"))

    def test_unknown_old_version_rejected(self) -> None:
        """An older version with no registered migration is rejected."""
        with pytest.raises(SaveMigrationError, match="No migration available"):
            migrate_save_payload(make_legacy_payload(saveVersion="0.9.0"))

    def test_registry_covers_chain(self) -> None:
        """Every version below the current one has a migration."""
        assert set(MIGRATIONS) == {"1.0.0", "1.1.0"}

    def test_needs_migration(self) -> None:
        """Only non-current versions need migration."""
        assert needs_migration(make_legacy_payload())
        assert not needs_migration({"saveVersion": SAVE_VERSION})


class TestPlayerIds:
    """Test legacy player id normalization."""

    @pytest.mark.parametrize(
        ("legacy", "expected"),
        [
            ("guest-42", "player_guest_42"),
            ("Alex Smith", "player_Alex_Smith"),
            ("player_1700000000000_abcd1234", "player_1700000000000_abcd1234"),
            ("---", "player_legacy"),
        ],
    )
    def test_normalize_player_id(self, legacy: str, expected: str) -> None:
        """Legacy ids gain the prefix; current ids are unchanged."""
        assert normalize_player_id(legacy) == expected

    def test_normalization_is_idempotent(self) -> None:
        """Normalizing twice gives the same id."""
        once = normalize_player_id("guest-42")
        assert normalize_player_id(once) == once

    def test_migration_normalizes_player_id(self) -> None:
        """Migrating to 1.2.0 rewrites the legacy id."""
        migrated = migrate_save_payload(make_legacy_payload())
        assert migrated["playerId"] == "player_guest_42"


def test_parse_version() -> None:
    """Versions parse to comparable tuples."""
    assert parse_version("1.10.0") > parse_version("1.2.0")
