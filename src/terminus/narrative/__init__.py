"""Narrative package - choice evaluation, state changes and sessions."""

from terminus.narrative.conditions import (
    EvaluatedChoice,
    evaluate_choices,
    evaluate_condition,
    visible_choices,
)
from terminus.narrative.reducer import apply_state_change
from terminus.narrative.session import ChoiceUnavailableError, NarrativeSession

__all__ = [
    "ChoiceUnavailableError",
    "EvaluatedChoice",
    "NarrativeSession",
    "apply_state_change",
    "evaluate_choices",
    "evaluate_condition",
    "visible_choices",
]
