"""State reducer: the only way GameState changes during play.

``apply_state_change`` never mutates its input. Top-level fields the change
does not touch are carried over by reference, so callers can compare
containers with ``is`` to see what changed.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from terminus.models.state import clamp_trust, create_character_state
from terminus.observability.logging import get_logger

if TYPE_CHECKING:
    from terminus.models.dialogue import StateChange
    from terminus.models.state import CharacterState, GameState

log = get_logger(__name__)


def _apply_character_change(char: CharacterState, change: StateChange) -> CharacterState:
    updates: dict[str, Any] = {}
    if change.trust_change is not None:
        trust = clamp_trust(char.trust + change.trust_change)
        if trust != char.trust:
            updates["trust"] = trust
    if change.add_knowledge_flags:
        flags = char.knowledge_flags.union(change.add_knowledge_flags)
        if flags != char.knowledge_flags:
            updates["knowledge_flags"] = flags
    return replace(char, **updates) if updates else char


def apply_state_change(state: GameState, change: StateChange) -> GameState:
    """Apply *change* to *state* and return the resulting state.

    - ``trust_change`` is added and clamped to [0, 10].
    - ``pattern_changes`` are added with no clamping in either direction.
    - Flag additions are set unions; flags are never removed.
    - ``mystery_changes`` replace the named mystery states.
    - A character without a CharacterState gets a default one first.

    Args:
        state: Current game state. Not modified.
        change: Delta to apply.

    Returns:
        New GameState, or *state* itself when nothing changed.
    """
    if change.is_empty:
        return state

    updates: dict[str, Any] = {}

    if change.pattern_changes:
        updates["patterns"] = state.patterns.with_deltas(change.pattern_changes)

    if change.character_id is not None and (
        change.trust_change is not None or change.add_knowledge_flags
    ):
        existing = state.characters.get(change.character_id)
        if existing is None:
            log.info("character_state_created", character_id=change.character_id)
            base = create_character_state(change.character_id)
        else:
            base = existing
        updated = _apply_character_change(base, change)
        if updated is not existing:
            characters = dict(state.characters)
            characters[change.character_id] = updated
            updates["characters"] = characters

    if change.add_global_flags:
        flags = state.global_flags.union(change.add_global_flags)
        if flags != state.global_flags:
            updates["global_flags"] = flags

    if change.mystery_changes:
        mysteries = {**state.mysteries, **change.mystery_changes}
        if mysteries != dict(state.mysteries):
            updates["mysteries"] = mysteries

    if not updates:
        return state
    return replace(state, **updates)
