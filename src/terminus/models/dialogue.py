"""Pydantic models for authored dialogue content.

These models define the static data the content-authoring layer ships with
each release: per-character dialogue graphs, the conditions gating choices,
the state changes choices apply, and the redirect map that keeps old saves
pointing at live nodes. All models are frozen; content is never mutated at
runtime.
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from terminus.models.state import MYSTERY_STATES, PatternName


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ValueRange(_Frozen):
    """Inclusive bound on a numeric value. Missing ends are unbounded."""

    min: int | None = None
    max: int | None = None

    def contains(self, value: int) -> bool:
        if self.min is not None and value < self.min:
            return False
        return not (self.max is not None and value > self.max)


class StateCondition(_Frozen):
    """Conditions on game state. All present sub-conditions must hold."""

    trust: ValueRange | None = Field(
        default=None, description="Bound on the evaluated character's trust"
    )
    patterns: dict[PatternName, ValueRange] = Field(
        default_factory=dict, description="Bound per pattern score"
    )
    has_global_flags: list[str] = Field(default_factory=list)
    lacks_global_flags: list[str] = Field(default_factory=list)
    has_knowledge_flags: list[str] = Field(default_factory=list)
    lacks_knowledge_flags: list[str] = Field(default_factory=list)

    @property
    def needs_character(self) -> bool:
        """True if evaluating this condition requires a CharacterState."""
        return bool(
            self.trust is not None or self.has_knowledge_flags or self.lacks_knowledge_flags
        )


class StateChange(_Frozen):
    """A partial delta applied to GameState when a choice is taken.

    Flags are only ever added. Character-scoped fields require
    ``character_id``.
    """

    pattern_changes: dict[PatternName, int] = Field(default_factory=dict)
    character_id: str | None = None
    trust_change: int | None = None
    add_knowledge_flags: list[str] = Field(default_factory=list)
    add_global_flags: list[str] = Field(default_factory=list)
    mystery_changes: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _character_fields_need_character(self) -> Self:
        if self.character_id is None and (
            self.trust_change is not None or self.add_knowledge_flags
        ):
            raise ValueError("trust_change and add_knowledge_flags require character_id")
        return self

    @field_validator("mystery_changes")
    @classmethod
    def _known_mysteries(cls, value: dict[str, str]) -> dict[str, str]:
        for name, mystery_state in value.items():
            allowed = MYSTERY_STATES.get(name)
            if allowed is None:
                raise ValueError(f"Unknown mystery '{name}'")
            if mystery_state not in allowed:
                raise ValueError(
                    f"Invalid state '{mystery_state}' for mystery '{name}' "
                    f"(expected one of: {', '.join(allowed)})"
                )
        return value

    @property
    def is_empty(self) -> bool:
        return not (
            self.pattern_changes
            or self.trust_change is not None
            or self.add_knowledge_flags
            or self.add_global_flags
            or self.mystery_changes
        )


class DialogueContent(_Frozen):
    """One pre-written variation of a node's text. Opaque to the engine."""

    text: str
    emotion: str | None = None
    variation_id: str = "default"


class ConditionalChoice(_Frozen):
    """A player choice whose visibility and effects depend on state."""

    choice_id: str = Field(min_length=1)
    text: str
    next_node_id: str = Field(min_length=1)
    visible_condition: StateCondition | None = None
    enabled_condition: StateCondition | None = None
    consequence: StateChange | None = None
    pattern: PatternName | None = Field(
        default=None, description="Playstyle this choice represents"
    )


class DialogueNode(_Frozen):
    """A single node of a character's dialogue graph."""

    node_id: str = Field(min_length=1)
    speaker: str = "Narrator"
    content: list[DialogueContent] = Field(default_factory=list)
    choices: list[ConditionalChoice] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    def get_choice(self, choice_id: str) -> ConditionalChoice | None:
        for choice in self.choices:
            if choice.choice_id == choice_id:
                return choice
        return None


class DialogueGraph(_Frozen):
    """All dialogue nodes belonging to one character."""

    character_id: str = Field(min_length=1)
    start_node_id: str = Field(min_length=1)
    hub_node_id: str | None = Field(
        default=None, description="Landing node used when recovering a lost position"
    )
    nodes: dict[str, DialogueNode] = Field(default_factory=dict)

    @field_validator("nodes", mode="before")
    @classmethod
    def _nodes_from_list(cls, value: object) -> object:
        # Authored YAML lists nodes; key them by node_id.
        if isinstance(value, list):
            return {
                (n.node_id if isinstance(n, DialogueNode) else n["node_id"]): n for n in value
            }
        return value

    @model_validator(mode="after")
    def _keys_match_node_ids(self) -> Self:
        for key, node in self.nodes.items():
            if key != node.node_id:
                raise ValueError(f"Node key '{key}' does not match node_id '{node.node_id}'")
        return self

    @property
    def landing_node_id(self) -> str:
        return self.hub_node_id or self.start_node_id


class RedirectEntry(_Frozen):
    """Lineage record pointing a retired node id at its replacement."""

    to_node_id: str = Field(min_length=1)
    reason: str = ""
    added_at: str = ""


class SafeStart(_Frozen):
    """The single global node every recovery can fall back to."""

    character_id: str = Field(min_length=1)
    node_id: str = Field(min_length=1)


class ContentBundle(_Frozen):
    """A release of authored content: graphs, redirects and the safe start."""

    version: str = "0"
    safe_start: SafeStart
    graphs: dict[str, DialogueGraph] = Field(default_factory=dict)
    redirects: dict[str, RedirectEntry] = Field(default_factory=dict)

    @field_validator("graphs", mode="before")
    @classmethod
    def _inject_character_ids(cls, value: object) -> object:
        # Graphs are keyed by character id; authors need not repeat it.
        if isinstance(value, dict):
            injected: dict[str, object] = {}
            for character_id, graph in value.items():
                if isinstance(graph, dict) and "character_id" not in graph:
                    graph = {**graph, "character_id": character_id}
                injected[character_id] = graph
            return injected
        return value
