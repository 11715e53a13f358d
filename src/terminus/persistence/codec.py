"""Serialization boundary between GameState and the persisted JSON schema.

In memory, flags are frozensets and characters a dict; on the wire they are
sorted arrays, so two equal states always serialize to identical bytes.
Everything read back from storage passes through ``parse_save`` before it
is trusted.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from terminus.models.state import (
    MYSTERY_STATES,
    CharacterState,
    GameState,
    PlayerPatterns,
    default_mysteries,
)
from terminus.models.wire import (
    SerializedCharacter,
    SerializedGameState,
    SerializedPatterns,
)
from terminus.observability.logging import get_logger
from terminus.persistence.errors import SaveValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = get_logger(__name__)


def _format_violations(error: ValidationError) -> list[str]:
    violations = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        violations.append(f"{loc}: {err['msg']}")
    return violations


def to_wire(state: GameState) -> SerializedGameState:
    """Convert a GameState to its persisted model.

    Raises:
        pydantic.ValidationError: If the state holds values the schema rejects.
    """
    return SerializedGameState(
        save_version=state.save_version,
        player_id=state.player_id,
        current_node_id=state.current_node_id,
        current_character_id=state.current_character_id,
        patterns=SerializedPatterns(**state.patterns.as_dict()),
        characters=[
            SerializedCharacter(
                character_id=char.character_id,
                trust=char.trust,
                knowledge_flags=sorted(char.knowledge_flags),
            )
            for _, char in sorted(state.characters.items())
        ],
        global_flags=sorted(state.global_flags),
        mysteries=dict(sorted(state.mysteries.items())),
        last_saved=state.last_saved,
        session_start_time=state.session_start_time,
    )


def serialize(state: GameState) -> dict[str, Any]:
    """Return the camelCase JSON-compatible dict for *state*."""
    return to_wire(state).model_dump(by_alias=True)


def dumps(state: GameState) -> str:
    """Serialize *state* to the exact string that is written to storage."""
    return to_wire(state).model_dump_json(by_alias=True)


def validate_game_state(state: GameState) -> list[str]:
    """Check an in-memory state against the persisted schema.

    Returns:
        Violations found; empty if the state can be saved.
    """
    violations: list[str] = []
    if not isinstance(state, GameState):
        return [f"expected GameState, got {type(state).__name__}"]
    for key, char in state.characters.items():
        if not isinstance(char, CharacterState):
            violations.append(f"characters.{key}: expected CharacterState")
        elif char.character_id != key:
            violations.append(f"characters.{key}: character_id is '{char.character_id}'")
    for name, value in state.mysteries.items():
        allowed = MYSTERY_STATES.get(name)
        if allowed is not None and value not in allowed:
            violations.append(f"mysteries.{name}: invalid state '{value}'")
    if violations:
        return violations
    try:
        to_wire(state)
    except ValidationError as e:
        violations.extend(_format_violations(e))
    except (TypeError, AttributeError) as e:
        violations.append(str(e))
    return violations


def parse_json(text: str, *, source: str = "") -> dict[str, Any]:
    """Parse stored text into a JSON object.

    Raises:
        SaveValidationError: If the text is not a JSON object.
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise SaveValidationError([f"not valid JSON: {e}"], source=source) from e
    if not isinstance(payload, dict):
        raise SaveValidationError(
            [f"expected a JSON object, got {type(payload).__name__}"], source=source
        )
    return payload


def validate_payload(payload: Mapping[str, Any], *, source: str = "") -> SerializedGameState:
    """Structurally validate a parsed save.

    Checks required fields, primitive types and plausible ranges (trust in
    [0, 10], patterns within the plausibility limit).

    Raises:
        SaveValidationError: With one violation per failed check.
    """
    try:
        return SerializedGameState.model_validate(dict(payload))
    except ValidationError as e:
        raise SaveValidationError(_format_violations(e), source=source) from e


def parse_save(text: str, *, source: str = "") -> SerializedGameState:
    """Parse and validate stored text in one step."""
    return validate_payload(parse_json(text, source=source), source=source)


def _deserialize_mysteries(stored: Mapping[str, str] | None) -> dict[str, str]:
    mysteries = default_mysteries()
    for name, value in (stored or {}).items():
        allowed = MYSTERY_STATES.get(name)
        if allowed is None:
            log.debug("unknown_mystery_dropped", mystery=name)
            continue
        if value not in allowed:
            log.warning("invalid_mystery_state_reset", mystery=name, value=value)
            continue
        mysteries[name] = value
    return mysteries


def deserialize(wire: SerializedGameState, *, session_start_time: int) -> GameState:
    """Rebuild the in-memory GameState from a validated, migrated save.

    ``session_start_time`` is always replaced: a session starts when the
    save is loaded.

    Raises:
        SaveValidationError: If the save has not been migrated to carry a
            current character.
    """
    if wire.current_character_id is None:
        raise SaveValidationError(["currentCharacterId: missing after migration"])

    characters: dict[str, CharacterState] = {}
    for char in wire.characters:
        characters[char.character_id] = CharacterState(
            character_id=char.character_id,
            trust=char.trust,
            knowledge_flags=frozenset(char.knowledge_flags),
        )

    return GameState(
        save_version=wire.save_version,
        player_id=wire.player_id,
        current_node_id=wire.current_node_id,
        current_character_id=wire.current_character_id,
        patterns=PlayerPatterns(**wire.patterns.model_dump()),
        characters=characters,
        global_flags=frozenset(wire.global_flags),
        mysteries=_deserialize_mysteries(wire.mysteries),
        last_saved=wire.last_saved,
        session_start_time=session_start_time,
    )
