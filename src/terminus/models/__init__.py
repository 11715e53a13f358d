"""Data models for Terminus.

- ``state``: runtime GameState (frozen dataclasses, structural sharing)
- ``dialogue``: authored content (pydantic, frozen)
- ``wire``: persisted save schema (pydantic, camelCase aliases)
"""

from terminus.models.dialogue import (
    ConditionalChoice,
    ContentBundle,
    DialogueContent,
    DialogueGraph,
    DialogueNode,
    RedirectEntry,
    SafeStart,
    StateChange,
    StateCondition,
    ValueRange,
)
from terminus.models.state import (
    DEFAULT_CHARACTERS,
    INTRODUCTION_CHARACTER_ID,
    INTRODUCTION_NODE_ID,
    MAX_TRUST,
    MIN_TRUST,
    MYSTERY_STATES,
    PATTERN_NAMES,
    SAVE_VERSION,
    CharacterState,
    GameState,
    PatternName,
    PlayerPatterns,
    create_character_state,
    create_new_game_state,
    ensure_character,
    generate_player_id,
)
from terminus.models.wire import (
    SerializedCharacter,
    SerializedGameState,
    SerializedPatterns,
)

__all__ = [
    "DEFAULT_CHARACTERS",
    "INTRODUCTION_CHARACTER_ID",
    "INTRODUCTION_NODE_ID",
    "MAX_TRUST",
    "MIN_TRUST",
    "MYSTERY_STATES",
    "PATTERN_NAMES",
    "SAVE_VERSION",
    "CharacterState",
    "ConditionalChoice",
    "ContentBundle",
    "DialogueContent",
    "DialogueGraph",
    "DialogueNode",
    "GameState",
    "PatternName",
    "PlayerPatterns",
    "RedirectEntry",
    "SafeStart",
    "SerializedCharacter",
    "SerializedGameState",
    "SerializedPatterns",
    "StateChange",
    "StateCondition",
    "ValueRange",
    "create_character_state",
    "create_new_game_state",
    "ensure_character",
    "generate_player_id",
]
