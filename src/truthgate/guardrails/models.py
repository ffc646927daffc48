"""Data models for guardrail evaluation."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from truthgate.domain.models import FindingStatus

ACTION_SEVERITY = {
    "BLOCK": "BLOCK_CONFIRMED",
    "DOWNGRADE": "DOWNGRADE",
    "INFO": "INFORMATIONAL",
}

@dataclass
class AppliedRule:
    rule_id: str
    code: str
    severity: str
    message: str
    category: str
    recommended_status: Optional[FindingStatus] = None
    contradiction: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
            "category": self.category,
            "recommendedStatus": self.recommended_status.value if self.recommended_status else None,
            "contradiction": self.contradiction,
        }

@dataclass
class GuardrailsReport:
    initial_status: FindingStatus
    final_status: FindingStatus
    initial_confidence: float
    final_confidence: float
    applied_rules: List[AppliedRule] = field(default_factory=list)
    contradictions: List[str] = field(default_factory=list)
    recommended_status: Optional[FindingStatus] = None
    confidence_adjustments: List[Dict[str, Any]] = field(default_factory=list)
    confidence_delta: float = 0.0
    policy_report: Dict[str, Any] = field(default_factory=dict)

    @property
    def was_downgraded(self) -> bool:
        return self.final_status.privilege < self.initial_status.privilege

    @property
    def final_decision(self) -> Dict[str, Any]:
        return {
            "finalStatus": self.final_status.value,
            "finalConfidence": self.final_confidence,
            "previousStatus": self.initial_status.value,
            "wasDowngraded": self.was_downgraded,
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "appliedRules": [r.as_dict() for r in self.applied_rules],
            "contradictions": list(self.contradictions),
            "recommendedStatus": self.recommended_status.value if self.recommended_status else None,
            "confidenceAdjustments": list(self.confidence_adjustments),
            "confidenceDelta": self.confidence_delta,
            "finalDecision": self.final_decision,
            "policyReport": dict(self.policy_report),
        }
