"""Intent classification and state-context analysis."""

from .classifier import IntentClassifier
from .intents import (
    ClassifiedIntent,
    InteractionIntent,
    NavigationIntent,
    SubmissionIntent,
    cap_reasons,
)
from .signals import EffectSignals
from .state_context import StateContext, StateContextAnalyser

__all__ = [
    "IntentClassifier",
    "ClassifiedIntent",
    "InteractionIntent",
    "NavigationIntent",
    "SubmissionIntent",
    "cap_reasons",
    "EffectSignals",
    "StateContext",
    "StateContextAnalyser",
]
