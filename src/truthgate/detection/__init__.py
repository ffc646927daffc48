"""Silent-failure detection, eligibility gating and silence recording."""

from .detectors import (
    DetectionOutcome,
    Detector,
    DeadInteractionDetector,
    BrokenNavigationDetector,
    SilentSubmissionDetector,
    InteractionIntentFallback,
    default_detectors,
)
from .eligibility import EligibilityGate, EligibilityRequest, EligibilityResult
from .silence import build_silence_signal, record_silence

__all__ = [
    "DetectionOutcome",
    "Detector",
    "DeadInteractionDetector",
    "BrokenNavigationDetector",
    "SilentSubmissionDetector",
    "InteractionIntentFallback",
    "default_detectors",
    "EligibilityGate",
    "EligibilityRequest",
    "EligibilityResult",
    "build_silence_signal",
    "record_silence",
]
