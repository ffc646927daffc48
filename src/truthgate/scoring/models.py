"""Data models for confidence scoring."""

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, List

from truthgate.domain.models import ConfidenceLevel

@dataclass
class ConfidenceResult:
    score01: float                  # 0..1
    score100: int                   # 0..100
    level: ConfidenceLevel
    reasons: List[str] = field(default_factory=list)           # core, bucket-gated
    advisory_reasons: List[str] = field(default_factory=list)  # tracked, never scored
    top_reasons: List[str] = field(default_factory=list)
    pillars: Dict[str, float] = field(default_factory=dict)
    contributors: Dict[str, float] = field(default_factory=dict)  # pillar -> weighted contribution
    penalties: Dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["level"] = self.level.value
        return d
