"""Confidence scoring."""

from .confidence import ConfidenceEngine, apply_truth_locks, clamp01, level_for
from .models import ConfidenceResult
from .reasons import ReasonCode, CORE_BUCKETS

__all__ = [
    "ConfidenceEngine",
    "ConfidenceResult",
    "ReasonCode",
    "CORE_BUCKETS",
    "apply_truth_locks",
    "clamp01",
    "level_for",
]
