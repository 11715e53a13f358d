"""Pydantic models for the persisted save schema.

The persisted form is a camelCase JSON object. Sets and maps of the
in-memory GameState are represented as sorted arrays here; conversion in
both directions lives in ``terminus.persistence.codec``.

Fields introduced by later save versions are optional so that older saves
pass structural validation and can then be migrated.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from terminus.models.state import MAX_TRUST, MIN_TRUST

# Pattern scores are unclamped, but anything beyond this is corruption.
PATTERN_PLAUSIBLE_LIMIT = 10_000

PatternScore = Annotated[
    StrictInt, Field(ge=-PATTERN_PLAUSIBLE_LIMIT, le=PATTERN_PLAUSIBLE_LIMIT)
]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class SerializedPatterns(_WireModel):
    """The five pattern scores."""

    analytical: PatternScore = 0
    helping: PatternScore = 0
    building: PatternScore = 0
    patience: PatternScore = 0
    exploring: PatternScore = 0


class SerializedCharacter(_WireModel):
    """One character's relationship state."""

    character_id: StrictStr = Field(min_length=1)
    trust: StrictInt = Field(ge=MIN_TRUST, le=MAX_TRUST)
    knowledge_flags: list[StrictStr] = Field(default_factory=list)


class SerializedGameState(_WireModel):
    """Persisted GameState.

    ``current_character_id``, ``mysteries`` and ``session_start_time`` were
    added in save version 1.1.0 and are filled in by migration.
    """

    save_version: StrictStr = Field(min_length=1)
    player_id: StrictStr = Field(min_length=1)
    current_node_id: StrictStr = Field(min_length=1)
    current_character_id: StrictStr | None = None
    patterns: SerializedPatterns
    characters: list[SerializedCharacter]
    global_flags: list[StrictStr]
    mysteries: dict[StrictStr, StrictStr] | None = None
    last_saved: StrictInt = Field(ge=0)
    session_start_time: StrictInt | None = None
