"""Narrative session: one player's walk through the dialogue graphs.

A NarrativeSession ties the pieces together for a caller:

    GraphStore node -> evaluate_choices -> choose -> apply_state_change
    -> move to next node -> autosave

It owns the current GameState; nothing else holds game state between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from terminus.models.state import create_new_game_state, ensure_character, generate_player_id
from terminus.narrative.conditions import evaluate_choices, visible_choices
from terminus.narrative.reducer import apply_state_change
from terminus.observability.logging import bind_player, get_logger

if TYPE_CHECKING:
    from terminus.graph.store import GraphStore
    from terminus.models.dialogue import DialogueNode
    from terminus.models.state import GameState
    from terminus.narrative.conditions import EvaluatedChoice
    from terminus.persistence.manager import PersistenceManager

log = get_logger(__name__)


@dataclass
class ChoiceUnavailableError(Exception):
    """The selected choice does not exist, is hidden, or is disabled."""

    choice_id: str
    node_id: str
    reason: str = ""

    def __post_init__(self) -> None:
        msg = f"Choice '{self.choice_id}' is not available at node '{self.node_id}'"
        if self.reason:
            msg += f": {self.reason}"
        super().__init__(msg)


class NarrativeSession:
    """Explicit context for one player's session.

    Args:
        graph_store: Authored content.
        persistence: Save slot owner.
        state: Current game state, already placed in *graph_store*.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        persistence: PersistenceManager,
        state: GameState,
    ) -> None:
        self.graph_store = graph_store
        self.persistence = persistence
        self.state = state
        bind_player(state.player_id)

    @classmethod
    def start(
        cls,
        graph_store: GraphStore,
        persistence: PersistenceManager,
        player_id: str | None = None,
    ) -> NarrativeSession:
        """Resume the saved game, or start and save a new one.

        Args:
            graph_store: Authored content.
            persistence: Save slot owner.
            player_id: Id for a new game. Generated when omitted.
        """
        state = persistence.load()
        if state is not None:
            log.info("session_resumed", player_id=state.player_id, node_id=state.current_node_id)
            return cls(graph_store, persistence, state)

        session = cls(graph_store, persistence, cls.new_game_state(graph_store, player_id))
        if not session.save():
            log.warning("new_game_save_failed", player_id=session.state.player_id)
        log.info("session_started", player_id=session.state.player_id)
        return session

    @staticmethod
    def new_game_state(graph_store: GraphStore, player_id: str | None = None) -> GameState:
        """Create a new game positioned at the content's safe start."""
        safe = graph_store.safe_start
        return create_new_game_state(
            player_id or generate_player_id(),
            characters=graph_store.character_ids(),
            start_character_id=safe.character_id,
            start_node_id=safe.node_id,
        )

    def current_node(self) -> DialogueNode:
        """Return the node the player is at.

        Raises:
            NodeNotFoundError: If the state points outside the graphs.
        """
        return self.graph_store.require_node(
            self.state.current_character_id,
            self.state.current_node_id,
            context="current position",
        )

    def evaluate_choices(self) -> list[EvaluatedChoice]:
        return evaluate_choices(self.current_node(), self.state, self.state.current_character_id)

    def visible_choices(self) -> list[EvaluatedChoice]:
        return visible_choices(self.current_node(), self.state, self.state.current_character_id)

    def choose(self, choice_id: str) -> GameState:
        """Take a choice at the current node.

        Applies the choice's consequence, moves to its target node and
        autosaves.

        Raises:
            ChoiceUnavailableError: If the choice is unknown, hidden or disabled.
            NodeNotFoundError: If the choice points at a node in no graph.
        """
        node = self.current_node()
        evaluated = {e.choice.choice_id: e for e in self.evaluate_choices()}
        entry = evaluated.get(choice_id)
        if entry is None:
            raise ChoiceUnavailableError(choice_id, node.node_id, "no such choice")
        if not entry.visible:
            raise ChoiceUnavailableError(choice_id, node.node_id, "not visible")
        if not entry.enabled:
            raise ChoiceUnavailableError(choice_id, node.node_id, entry.reason or "disabled")

        choice = entry.choice
        state = self.state
        if choice.consequence is not None:
            state = apply_state_change(state, choice.consequence)

        target = choice.next_node_id
        character_id = state.current_character_id
        if not self.graph_store.has_node(character_id, target):
            owner = self.graph_store.find_character_for_node(target)
            if owner is None:
                # Raises with the current graph's ids for suggestions
                self.graph_store.require_node(
                    character_id, target, context=f"choice '{choice_id}'"
                )
            else:
                log.debug("conversation_switched", old=character_id, new=owner, node_id=target)
                character_id = owner

        state = replace(state, current_node_id=target, current_character_id=character_id)
        self.state = ensure_character(state, character_id)
        log.debug("choice_taken", choice_id=choice_id, from_node=node.node_id, to_node=target)

        if self.persistence.autosave(self.state):
            self._stamp_saved()
        return self.state

    def save(self) -> bool:
        ok = self.persistence.save(self.state)
        if ok:
            self._stamp_saved()
        return ok

    def _stamp_saved(self) -> None:
        if self.persistence.last_saved is not None:
            self.state = replace(self.state, last_saved=self.persistence.last_saved)

    def return_to_hub(self) -> GameState:
        """Move to the current character's hub (or the safe start) and save."""
        self.state = self.persistence.reset_conversation_position(self.state)
        self.save()
        return self.state

    def reset(self, player_id: str | None = None) -> GameState:
        """Delete all saves and start a new game.

        Raises:
            StorageWriteError: If the saves cannot be removed.
        """
        self.persistence.delete_all()
        self.graph_store.invalidate_index()
        self.state = self.new_game_state(self.graph_store, player_id)
        bind_player(self.state.player_id)
        self.save()
        log.warning("session_reset", player_id=self.state.player_id)
        return self.state
