"""Recording judgments the pipeline declined to make."""

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional

from truthgate.classification.intents import ClassifiedIntent
from truthgate.domain.models import Expectation, Observation, SilenceSignal

logger = logging.getLogger(__name__)

INTENT_BLOCKED = "intent_blocked"
INTERACTION_AMBIGUOUS = "interaction_ambiguous"
NAVIGATION_AMBIGUOUS = "navigation_ambiguous"
SUBMISSION_AMBIGUOUS = "submission_ambiguous"

def build_silence_signal(
    kind: str,
    code: str,
    observation: Observation,
    expectation: Optional[Expectation] = None,
    intent: Optional[ClassifiedIntent] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> SilenceSignal:
    return SilenceSignal(
        kind=kind,
        code=code,
        observation_id=observation.id,
        action=observation.action,
        expectation_id=expectation.id if expectation is not None else None,
        intent=intent.name if intent is not None else None,
        intent_reasons=intent.reasons if intent is not None else (),
        details=dict(details or {}),
    )

def record_silence(observation: Observation, signal: SilenceSignal) -> Observation:
    """Return a copy of the observation carrying the signal; an earlier signal is kept."""
    if observation.silence_detected is not None:
        logger.debug(
            "[silence] %s already carries %s, ignoring %s",
            observation.id, observation.silence_detected.get("code"), signal.code,
        )
        return observation
    return replace(observation, silence_detected=signal.to_dict())
