"""PersistenceManager: saving, loading and recovering the player's GameState.

Loading is a fixed pipeline run against the primary slot and, if any step
fails, against the backup slot:

    read -> validate -> migrate -> deserialize -> resolve redirects -> recover

Recovery places the player back on a node that exists without touching
patterns, characters or flags:

    exact / redirected -> relocated (node found in another character's graph)
    -> hub (the character's landing node) -> safe_start (global fallback)

``load()`` never raises. ``save()`` reports failure with False and leaves
the previously stored save in place.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

from terminus.graph.errors import GraphIntegrityError, NodeNotFoundError, RecoveryFailedError
from terminus.graph.redirects import DEFAULT_MAX_HOPS
from terminus.models.state import SAVE_VERSION, ensure_character
from terminus.observability.logging import get_logger
from terminus.persistence.codec import (
    deserialize,
    dumps,
    parse_json,
    validate_game_state,
    validate_payload,
)
from terminus.persistence.errors import PersistenceError, StorageError
from terminus.persistence.migrations import migrate_save_payload, needs_migration

if TYPE_CHECKING:
    from collections.abc import Callable

    from terminus.config import EngineConfig
    from terminus.graph.redirects import RedirectResolution
    from terminus.graph.store import GraphStore
    from terminus.models.state import GameState
    from terminus.models.wire import SerializedGameState
    from terminus.persistence.storage import SaveStorage

log = get_logger(__name__)

DEFAULT_SAVE_KEY = "grand-central-terminus-save-v1"
DEFAULT_AUTOSAVE_INTERVAL_SECONDS = 30.0

LoadSource = Literal["primary", "backup"]
RecoveryStep = Literal["exact", "redirected", "relocated", "hub", "safe_start"]


@dataclass(frozen=True)
class LoadOutcome:
    """What ``load_with_report()`` found.

    Attributes:
        state: The loaded state, or None when there is no usable save.
        source: Slot the state came from.
        recovery: How the saved position was placed in the current graphs.
        redirect: Redirect resolution of the saved node id.
        original_node_id: Node id as stored, before redirects and recovery.
        failures: One entry per slot that failed to load.
    """

    state: GameState | None
    source: LoadSource | None = None
    recovery: RecoveryStep | None = None
    redirect: RedirectResolution | None = None
    original_node_id: str | None = None
    failures: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SaveMetadata:
    """Summary of the stored save, for menus and the CLI."""

    exists: bool
    version: str | None = None
    last_saved: int | None = None
    player_id: str | None = None


class PersistenceManager:
    """Save slot owner for one player.

    Args:
        storage: Backend the slots live in.
        graph_store: Content release saves are placed into on load.
        key: Primary slot key.
        backup_key: Backup slot key. Defaults to ``<key>-backup``.
        autosave_interval_seconds: Minimum time between autosaves.
        redirect_max_hops: Hop limit for redirect resolution.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        storage: SaveStorage,
        graph_store: GraphStore,
        *,
        key: str = DEFAULT_SAVE_KEY,
        backup_key: str | None = None,
        autosave_interval_seconds: float = DEFAULT_AUTOSAVE_INTERVAL_SECONDS,
        redirect_max_hops: int = DEFAULT_MAX_HOPS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._graph_store = graph_store
        self.key = key
        self.backup_key = backup_key or f"{key}-backup"
        self.autosave_interval_seconds = autosave_interval_seconds
        self.redirect_max_hops = redirect_max_hops
        self._clock = clock
        self._last_autosave: float | None = None
        self.last_saved: int | None = None

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        storage: SaveStorage,
        graph_store: GraphStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> PersistenceManager:
        return cls(
            storage,
            graph_store,
            key=config.storage.key,
            backup_key=config.storage.backup_key,
            autosave_interval_seconds=config.autosave_interval_seconds,
            redirect_max_hops=config.redirect_max_hops,
            clock=clock,
        )

    @property
    def graph_store(self) -> GraphStore:
        return self._graph_store

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # -- Loading ---------------------------------------------------------------

    def load(self) -> GameState | None:
        """Load the saved GameState, or None if there is no usable save."""
        return self.load_with_report().state

    def load_with_report(self) -> LoadOutcome:
        """Load the saved GameState and report how it was obtained.

        A missing primary slot means "no save". A primary slot that cannot be
        read, validated, migrated or placed falls back to the backup slot;
        if that fails too the outcome carries no state.
        """
        failures: list[str] = []
        try:
            raw = self._storage.get_item(self.key)
        except StorageError as e:
            log.warning("save_read_failed", key=self.key, error=str(e))
            failures.append(f"{self.key}: {e}")
        else:
            if raw is None:
                log.debug("no_save_found", key=self.key)
                return LoadOutcome(state=None)
            try:
                return self._load_slot(raw, self.key, "primary")
            except (PersistenceError, GraphIntegrityError) as e:
                log.warning("save_slot_invalid", key=self.key, error=str(e))
                failures.append(f"{self.key}: {e}")

        try:
            backup = self._storage.get_item(self.backup_key)
        except StorageError as e:
            log.warning("save_read_failed", key=self.backup_key, error=str(e))
            failures.append(f"{self.backup_key}: {e}")
            backup = None
        if backup is not None:
            try:
                outcome = self._load_slot(backup, self.backup_key, "backup")
            except (PersistenceError, GraphIntegrityError) as e:
                log.warning("save_slot_invalid", key=self.backup_key, error=str(e))
                failures.append(f"{self.backup_key}: {e}")
            else:
                log.warning("save_restored_from_backup", key=self.backup_key)
                return replace(outcome, failures=failures)

        log.error("save_unrecoverable", key=self.key, failures=failures)
        return LoadOutcome(state=None, failures=failures)

    def _gate(self, raw: str, key: str) -> SerializedGameState:
        """Parse, validate and migrate stored text."""
        payload = parse_json(raw, source=key)
        wire = validate_payload(payload, source=key)
        if not needs_migration(payload):
            return wire
        migrated = migrate_save_payload(payload)
        log.info(
            "save_migrated",
            key=key,
            from_version=payload.get("saveVersion"),
            to_version=migrated.get("saveVersion"),
        )
        return validate_payload(migrated, source=key)

    def _load_slot(self, raw: str, key: str, source: LoadSource) -> LoadOutcome:
        wire = self._gate(raw, key)
        state = deserialize(wire, session_start_time=self._now_ms())
        outcome = self._place(state, source)
        log.info(
            "save_loaded",
            key=key,
            source=source,
            recovery=outcome.recovery,
            node_id=outcome.state.current_node_id if outcome.state else None,
        )
        return outcome

    def _place(self, state: GameState, source: LoadSource) -> LoadOutcome:
        """Resolve redirects and run the recovery ladder on the saved position.

        Raises:
            RecoveryFailedError: If no step produced an existing node.
        """
        store = self._graph_store
        original_node_id = state.current_node_id
        character_id = state.current_character_id

        resolution = store.resolve_redirect(original_node_id, self.redirect_max_hops)
        error = resolution.as_error()
        if resolution.cycle_detected:
            log.warning(
                "redirect_cycle_detected",
                node_id=original_node_id,
                path=resolution.path,
                resolved=resolution.resolved_node_id,
                detail=error.describe() if error else None,
            )
        elif resolution.truncated:
            log.warning(
                "redirect_chain_truncated",
                node_id=original_node_id,
                path=resolution.path,
                max_hops=resolution.max_hops,
                resolved=resolution.resolved_node_id,
            )
        node_id = resolution.resolved_node_id
        step: RecoveryStep = "redirected" if resolution.redirected else "exact"
        if resolution.redirected:
            log.info(
                "save_node_redirected",
                old_node_id=original_node_id,
                new_node_id=node_id,
                hops=resolution.hops,
            )

        attempted: list[str] = []
        if not store.has_node(character_id, node_id):
            graph = store.graph_for(character_id)
            missing = NodeNotFoundError(
                node_id=node_id,
                character_id=character_id,
                available=list(graph.nodes) if graph else [],
                context="saved position",
            )
            log.warning("saved_node_missing", detail=missing.describe())
            attempted.append(f"exact: {missing}")

            owner = store.find_character_for_node(node_id)
            if owner is not None:
                log.warning(
                    "save_character_relocated",
                    node_id=node_id,
                    old_character_id=character_id,
                    new_character_id=owner,
                )
                character_id = owner
                if step == "exact":
                    step = "relocated"
            else:
                attempted.append(f"relocated: '{node_id}' is in no graph")
                hub = store.hub_node_for(character_id)
                safe = store.safe_start
                if hub is not None:
                    node_id, step = hub, "hub"
                elif store.has_node(safe.character_id, safe.node_id):
                    attempted.append(f"hub: no landing node for '{character_id}'")
                    node_id, character_id, step = safe.node_id, safe.character_id, "safe_start"
                else:
                    attempted.append(f"hub: no landing node for '{character_id}'")
                    attempted.append(f"safe_start: '{safe.node_id}' not in '{safe.character_id}'")
                    raise RecoveryFailedError(
                        node_id=node_id,
                        character_id=state.current_character_id,
                        attempted=attempted,
                    )
                log.warning(
                    "save_position_recovered",
                    old_node_id=original_node_id,
                    new_node_id=node_id,
                    character_id=character_id,
                    step=step,
                )

        if character_id != state.current_character_id:
            state = replace(state, current_node_id=node_id, current_character_id=character_id)
            state = ensure_character(state, character_id)
        elif node_id != state.current_node_id:
            state = replace(state, current_node_id=node_id)
        return LoadOutcome(
            state=state,
            source=source,
            recovery=step,
            redirect=resolution,
            original_node_id=original_node_id,
        )

    # -- Saving ----------------------------------------------------------------

    def save(self, state: GameState) -> bool:
        """Validate, stamp and persist *state*.

        The stored save is copied to the backup slot first. The write is
        read back and compared; on mismatch or storage error the previous
        save is put back.

        Returns:
            True if the state is stored and verified.
        """
        violations = validate_game_state(state)
        if violations:
            log.error("save_rejected_invalid", violations=violations)
            return False

        saved_at = self._now_ms()
        stamped = replace(state, last_saved=saved_at, save_version=SAVE_VERSION)
        if not self._write(dumps(stamped)):
            return False
        self.last_saved = saved_at
        log.debug("game_saved", key=self.key, node_id=state.current_node_id)
        return True

    def autosave(self, state: GameState) -> bool:
        """Save unless the last successful autosave was too recent.

        Returns:
            True only when a write was performed and succeeded.
        """
        now = self._clock()
        if (
            self._last_autosave is not None
            and now - self._last_autosave < self.autosave_interval_seconds
        ):
            log.debug("autosave_throttled", seconds_since=now - self._last_autosave)
            return False
        ok = self.save(state)
        if ok:
            self._last_autosave = now
        return ok

    def _write(self, text: str) -> bool:
        try:
            previous = self._storage.get_item(self.key)
        except StorageError as e:
            log.error("save_failed", key=self.key, stage="read_previous", error=str(e))
            return False

        try:
            if previous is not None and self._is_loadable(previous):
                self._storage.set_item(self.backup_key, previous)
            self._storage.set_item(self.key, text)
            written = self._storage.get_item(self.key)
        except StorageError as e:
            log.error("save_failed", key=self.key, stage="write", error=str(e))
            self._restore(previous)
            return False

        if written != text:
            log.error("save_verification_failed", key=self.key)
            self._restore(previous)
            return False
        return True

    def _is_loadable(self, raw: str) -> bool:
        try:
            self._gate(raw, self.key)
        except PersistenceError as e:
            log.warning("backup_skipped_invalid_save", key=self.key, error=str(e))
            return False
        return True

    def _restore(self, previous: str | None) -> None:
        try:
            if previous is None:
                self._storage.remove_item(self.key)
            else:
                self._storage.set_item(self.key, previous)
        except StorageError as e:
            log.error("save_restore_failed", key=self.key, error=str(e))

    # -- Slot management -------------------------------------------------------

    def has_save(self) -> bool:
        try:
            return self._storage.get_item(self.key) is not None
        except StorageError:
            return False

    def get_save_metadata(self) -> SaveMetadata:
        """Describe the stored save without loading it. Never raises."""
        try:
            raw = self._storage.get_item(self.key)
            if raw is None:
                return SaveMetadata(exists=False)
            wire = validate_payload(parse_json(raw, source=self.key), source=self.key)
        except (StorageError, PersistenceError) as e:
            log.debug("save_metadata_unavailable", key=self.key, error=str(e))
            return SaveMetadata(exists=False)
        return SaveMetadata(
            exists=True,
            version=wire.save_version,
            last_saved=wire.last_saved,
            player_id=wire.player_id,
        )

    def export_save(self) -> str | None:
        """Return the stored save text if it passes validation."""
        try:
            raw = self._storage.get_item(self.key)
            if raw is None:
                return None
            self._gate(raw, self.key)
        except (StorageError, PersistenceError) as e:
            log.error("save_export_failed", key=self.key, error=str(e))
            return None
        return raw

    def import_save(self, text: str) -> bool:
        """Replace the stored save with *text* after validating it.

        The current save is copied to the backup slot first.

        Returns:
            True if the text was valid and has been written and verified.
        """
        try:
            wire = self._gate(text, "import")
        except PersistenceError as e:
            log.error("save_import_rejected", error=str(e))
            return False
        if not self._write(text):
            return False
        log.info("save_imported", player_id=wire.player_id, version=wire.save_version)
        return True

    def restore_from_backup(self) -> bool:
        """Copy a valid backup slot over the primary slot."""
        try:
            backup = self._storage.get_item(self.backup_key)
            if backup is None:
                log.warning("no_backup_found", key=self.backup_key)
                return False
            self._gate(backup, self.backup_key)
            self._storage.set_item(self.key, backup)
        except (StorageError, PersistenceError) as e:
            log.error("backup_restore_failed", key=self.backup_key, error=str(e))
            return False
        log.info("backup_restored", key=self.key)
        return True

    def reset_conversation_position(self, state: GameState) -> GameState:
        """Move the player to the current character's hub, or the safe start.

        Relationships, patterns, flags and mysteries are kept. The result is
        not saved.
        """
        store = self._graph_store
        hub = store.hub_node_for(state.current_character_id)
        if hub is not None:
            node_id, character_id = hub, state.current_character_id
        else:
            node_id = store.safe_start.node_id
            character_id = store.safe_start.character_id
        log.info(
            "conversation_position_reset",
            old_node_id=state.current_node_id,
            new_node_id=node_id,
            character_id=character_id,
        )
        moved = replace(state, current_node_id=node_id, current_character_id=character_id)
        return ensure_character(moved, character_id)

    def delete_all(self) -> None:
        """Remove the primary and backup slots.

        Raises:
            StorageWriteError: If the backend cannot remove a key.
        """
        self._storage.remove_item(self.key)
        self._storage.remove_item(self.backup_key)
        self._last_autosave = None
        self.last_saved = None
        log.warning("saves_deleted", key=self.key, backup_key=self.backup_key)
