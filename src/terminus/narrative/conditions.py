"""Choice visibility evaluation.

Decides which of a node's choices the player sees, given trust, pattern
scores and flags. Evaluation is pure: it reads GameState and the authored
conditions and returns new EvaluatedChoice records.

A node must always leave the player something to do. Authors are expected
to give every reachable node at least one unconditioned choice; when that
convention is broken and every condition fails, the whole node is made
visible instead of stranding the player.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from terminus.observability.logging import get_logger

if TYPE_CHECKING:
    from terminus.models.dialogue import ConditionalChoice, DialogueNode, StateCondition
    from terminus.models.state import GameState

log = get_logger(__name__)


@dataclass(frozen=True)
class EvaluatedChoice:
    """A choice together with its evaluated availability.

    Attributes:
        choice: The authored choice.
        visible: Whether the UI should show it.
        enabled: Whether it can be selected (only meaningful when visible).
        reason: Why a visible choice is disabled, for tooltips.
        fallback: Visibility was forced because nothing else was visible.
    """

    choice: ConditionalChoice
    visible: bool
    enabled: bool
    reason: str | None = None
    fallback: bool = False


def evaluate_condition(
    condition: StateCondition | None,
    state: GameState,
    character_id: str | None = None,
) -> bool:
    """Check whether *condition* holds for *state*.

    A missing condition always holds. Trust and knowledge-flag conditions
    fail if *character_id* has no CharacterState.
    """
    if condition is None:
        return True

    char_state = state.characters.get(character_id) if character_id else None
    if condition.needs_character and char_state is None:
        log.debug("condition_missing_character", character_id=character_id)
        return False

    if condition.trust is not None and char_state is not None:
        if not condition.trust.contains(char_state.trust):
            return False

    if char_state is not None:
        if any(flag not in char_state.knowledge_flags for flag in condition.has_knowledge_flags):
            return False
        if any(flag in char_state.knowledge_flags for flag in condition.lacks_knowledge_flags):
            return False

    if any(flag not in state.global_flags for flag in condition.has_global_flags):
        return False
    if any(flag in state.global_flags for flag in condition.lacks_global_flags):
        return False

    for pattern, bound in condition.patterns.items():
        if not bound.contains(state.patterns.get(pattern)):
            return False

    return True


def describe_unmet(
    condition: StateCondition | None,
    state: GameState,
    character_id: str | None = None,
) -> str:
    """Explain in plain words why *condition* does not hold."""
    if condition is None:
        return "Unknown reason"

    reasons: list[str] = []
    char_state = state.characters.get(character_id) if character_id else None

    if condition.needs_character and char_state is None:
        reasons.append(f"Need to meet {character_id or 'this character'} first")

    if condition.trust is not None and char_state is not None:
        trust = char_state.trust
        if condition.trust.min is not None and trust < condition.trust.min:
            reasons.append(f"Need {condition.trust.min} trust (have {trust})")
        if condition.trust.max is not None and trust > condition.trust.max:
            reasons.append(f"Need at most {condition.trust.max} trust (have {trust})")

    for pattern, bound in condition.patterns.items():
        value = state.patterns.get(pattern)
        if bound.min is not None and value < bound.min:
            reasons.append(f"Need {bound.min} {pattern} (have {value})")
        if bound.max is not None and value > bound.max:
            reasons.append(f"Need at most {bound.max} {pattern} (have {value})")

    for flag in condition.has_global_flags:
        if flag not in state.global_flags:
            reasons.append(f"Missing requirement: {flag}")
    for flag in condition.lacks_global_flags:
        if flag in state.global_flags:
            reasons.append(f"Not available after: {flag}")

    if char_state is not None:
        for flag in condition.has_knowledge_flags:
            if flag not in char_state.knowledge_flags:
                reasons.append(f"{character_id} does not know: {flag}")
        for flag in condition.lacks_knowledge_flags:
            if flag in char_state.knowledge_flags:
                reasons.append(f"{character_id} already knows: {flag}")

    return ", ".join(reasons) if reasons else "Requirements not met"


def _evaluate_one(
    choice: ConditionalChoice, state: GameState, character_id: str | None
) -> EvaluatedChoice:
    visible = evaluate_condition(choice.visible_condition, state, character_id)
    enabled = visible and evaluate_condition(choice.enabled_condition, state, character_id)
    reason = None
    if visible and not enabled:
        reason = describe_unmet(choice.enabled_condition, state, character_id)
    return EvaluatedChoice(choice=choice, visible=visible, enabled=enabled, reason=reason)


def evaluate_choices(
    node: DialogueNode,
    state: GameState,
    character_id: str | None = None,
) -> list[EvaluatedChoice]:
    """Evaluate every choice of *node* against *state*.

    Order matches ``node.choices``. If no choice would be visible, every
    choice is returned visible and enabled with ``fallback=True``: the
    override applies to the whole node, never to a single "closest" choice.

    Args:
        node: Node whose choices to evaluate.
        state: Current game state.
        character_id: Character whose trust/knowledge conditions refer to.

    Returns:
        One EvaluatedChoice per authored choice.
    """
    evaluated = [_evaluate_one(choice, state, character_id) for choice in node.choices]

    if evaluated and not any(e.visible for e in evaluated):
        log.warning(
            "choice_visibility_fallback",
            node_id=node.node_id,
            character_id=character_id,
            choices=len(evaluated),
        )
        return [
            EvaluatedChoice(choice=e.choice, visible=True, enabled=True, fallback=True)
            for e in evaluated
        ]

    return evaluated


def visible_choices(
    node: DialogueNode,
    state: GameState,
    character_id: str | None = None,
) -> list[EvaluatedChoice]:
    """Return only the choices the player should see."""
    return [e for e in evaluate_choices(node, state, character_id) if e.visible]
