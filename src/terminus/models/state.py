"""Player state model.

GameState is the player's save: position in the dialogue graphs, the five
playstyle patterns, per-character relationship state, story flags and
mystery progress. Instances are frozen; the reducer in
``terminus.narrative.reducer`` produces new instances that share every
container it did not touch.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal, get_args

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

PatternName = Literal["analytical", "helping", "building", "patience", "exploring"]
PATTERN_NAMES: tuple[PatternName, ...] = get_args(PatternName)

MIN_TRUST = 0
MAX_TRUST = 10
DEFAULT_TRUST = 0

SAVE_VERSION = "1.2.0"

DEFAULT_CHARACTERS: tuple[str, ...] = ("samuel", "maya", "devon", "jordan")
INTRODUCTION_CHARACTER_ID = "samuel"
INTRODUCTION_NODE_ID = "samuel_introduction"

PLAYER_ID_PREFIX = "player_"

# Story-progress enums. The first value of each tuple is the starting state.
MYSTERY_STATES: dict[str, tuple[str, ...]] = {
    "letterSender": (
        "unknown",
        "investigating",
        "trusted",
        "rejected",
        "samuel_knows",
        "self_revealed",
    ),
    "platformSeven": ("stable", "flickering", "error", "denied", "revealed"),
    "samuelsPast": ("hidden", "hinted", "revealed"),
    "stationNature": ("unknown", "sensing", "understanding", "mastered"),
}


def clamp_trust(value: int) -> int:
    """Clamp a trust value into [MIN_TRUST, MAX_TRUST]."""
    return max(MIN_TRUST, min(MAX_TRUST, value))


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_player_id() -> str:
    """Create a player id in the current ``player_<ms>_<hex>`` scheme."""
    return f"{PLAYER_ID_PREFIX}{now_ms()}_{secrets.token_hex(4)}"


def default_mysteries() -> dict[str, str]:
    """Return every mystery at its starting state."""
    return {name: states[0] for name, states in MYSTERY_STATES.items()}


@dataclass(frozen=True)
class PlayerPatterns:
    """Running playstyle scores.

    Scores are deliberately unbounded in both directions; only trust is
    clamped. Existing saves contain negative pattern values.
    """

    analytical: int = 0
    helping: int = 0
    building: int = 0
    patience: int = 0
    exploring: int = 0

    def get(self, name: PatternName) -> int:
        return int(getattr(self, name))

    def with_deltas(self, deltas: Mapping[str, int]) -> PlayerPatterns:
        """Return new patterns with *deltas* added (no clamping)."""
        updates = {name: getattr(self, name) + delta for name, delta in deltas.items()}
        return replace(self, **updates)

    def as_dict(self) -> dict[str, int]:
        return {name: self.get(name) for name in PATTERN_NAMES}


@dataclass(frozen=True)
class CharacterState:
    """Relationship state between the player and one character."""

    character_id: str
    trust: int = DEFAULT_TRUST
    knowledge_flags: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class GameState:
    """The player's save.

    ``current_node_id`` must exist in the graph of ``current_character_id``
    once redirects are resolved. That invariant is checked when a save is
    loaded; during play the only source of node ids is the previous node's
    choices.

    Attributes:
        save_version: Schema version the state was written with.
        player_id: Stable player identifier.
        current_node_id: Dialogue node the player is positioned at.
        current_character_id: Character whose graph holds the current node.
        patterns: Five playstyle scores.
        characters: Per-character relationship state, keyed by character id.
        global_flags: Story-wide markers. Append-only.
        mysteries: Mystery name to its current state.
        last_saved: Epoch ms of the last successful save.
        session_start_time: Epoch ms at which this session began.
    """

    player_id: str
    current_node_id: str
    current_character_id: str
    patterns: PlayerPatterns = field(default_factory=PlayerPatterns)
    characters: Mapping[str, CharacterState] = field(default_factory=dict)
    global_flags: frozenset[str] = field(default_factory=frozenset)
    mysteries: Mapping[str, str] = field(default_factory=default_mysteries)
    save_version: str = SAVE_VERSION
    last_saved: int = 0
    session_start_time: int = 0

    def character(self, character_id: str) -> CharacterState | None:
        return self.characters.get(character_id)

    def trust_for(self, character_id: str) -> int | None:
        char = self.characters.get(character_id)
        return char.trust if char is not None else None


def create_character_state(character_id: str) -> CharacterState:
    """Create a character at default trust with no knowledge flags."""
    return CharacterState(character_id=character_id)


def create_new_game_state(
    player_id: str,
    *,
    characters: Iterable[str] = DEFAULT_CHARACTERS,
    start_character_id: str = INTRODUCTION_CHARACTER_ID,
    start_node_id: str = INTRODUCTION_NODE_ID,
) -> GameState:
    """Create a fresh game state for a new game.

    Args:
        player_id: Identifier for the new player.
        characters: Cast that starts with a default CharacterState.
        start_character_id: Character owning the introduction node.
        start_node_id: Introduction node the game opens on.

    Returns:
        GameState with zeroed patterns, empty flags and default mysteries.
    """
    cast = {cid: create_character_state(cid) for cid in characters}
    if start_character_id not in cast:
        cast[start_character_id] = create_character_state(start_character_id)
    now = now_ms()
    return GameState(
        player_id=player_id,
        current_node_id=start_node_id,
        current_character_id=start_character_id,
        patterns=PlayerPatterns(),
        characters=cast,
        global_flags=frozenset(),
        mysteries=default_mysteries(),
        save_version=SAVE_VERSION,
        last_saved=now,
        session_start_time=now,
    )


def ensure_character(state: GameState, character_id: str) -> GameState:
    """Return *state* with a default CharacterState for *character_id* if missing.

    Existing characters are never modified; the same state is returned when
    the character is already present.
    """
    if character_id in state.characters:
        return state
    characters = dict(state.characters)
    characters[character_id] = create_character_state(character_id)
    return replace(state, characters=characters)
