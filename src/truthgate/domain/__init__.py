"""Core domain models."""

from .models import (
    FindingStatus,
    Severity,
    FindingType,
    DeterminismVerdict,
    ConfidenceLevel,
    SourceLocation,
    Expectation,
    ElementSnapshot,
    Observation,
    SilenceSignal,
    EvidencePackage,
    CandidateFinding,
    Finding,
    PipelineStats,
)

__all__ = [
    "FindingStatus",
    "Severity",
    "FindingType",
    "DeterminismVerdict",
    "ConfidenceLevel",
    "SourceLocation",
    "Expectation",
    "ElementSnapshot",
    "Observation",
    "SilenceSignal",
    "EvidencePackage",
    "CandidateFinding",
    "Finding",
    "PipelineStats",
]
