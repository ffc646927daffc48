"""Type-specific gate deciding whether a candidate may carry CONFIRMED."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from truthgate.classification.intents import ClassifiedIntent
from truthgate.domain.models import CandidateFinding, FindingStatus, FindingType
from .evidence import has_route_evidence, missing_state_evidence

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    missing: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"eligible": self.eligible, "missing": list(self.missing)}


@dataclass(frozen=True)
class EligibilityRequest:
    """Facts a detector gathered about one candidate."""
    type: FindingType
    attempted: bool = False
    action_success: bool = False
    intent: Optional[ClassifiedIntent] = None
    signals: Mapping = field(default_factory=dict)
    element_snapshot_actionable: Optional[bool] = None
    evidence_files: Tuple[str, ...] = ()
    route_data: Mapping = field(default_factory=dict)
    runtime_navigation: bool = False


_BASE = ("attempted", "action_success", "resolved_intent", "state_comparison_evidence")

REQUIREMENTS: Dict[FindingType, Tuple[str, ...]] = {
    FindingType.DEAD_INTERACTION: _BASE + ("actionable_element",),
    FindingType.BROKEN_NAVIGATION: _BASE,
    FindingType.SILENT_SUBMISSION: _BASE + ("submission_signals",),
}


class EligibilityGate:
    """Second, independent check behind the confidence score."""

    def check(self, request: EligibilityRequest) -> EligibilityResult:
        required = REQUIREMENTS.get(request.type)
        if required is None:
            return EligibilityResult(eligible=False, missing=("eligibility_rule",))

        missing = []
        for requirement in required:
            missing.extend(self._missing_for(requirement, request))
        if request.type is FindingType.BROKEN_NAVIGATION and request.runtime_navigation \
                and not has_route_evidence(request.route_data):
            missing.append("route_evidence")
        return EligibilityResult(eligible=not missing, missing=tuple(missing))

    def _missing_for(self, requirement: str, request: EligibilityRequest) -> Iterable[str]:
        if requirement == "attempted":
            return [] if request.attempted else ["attempted"]
        if requirement == "action_success":
            return [] if request.action_success else ["action_success"]
        if requirement == "resolved_intent":
            ok = request.intent is not None and request.intent.is_resolved
            return [] if ok else ["resolved_intent"]
        if requirement == "actionable_element":
            return [] if request.element_snapshot_actionable is True else ["actionable_element"]
        if requirement == "state_comparison_evidence":
            return missing_state_evidence(request.evidence_files)
        if requirement == "submission_signals":
            signals = request.signals or {}
            return [
                key for key in ("submissionTriggered", "networkAttemptAfterSubmit")
                if not isinstance(signals.get(key), bool)
            ]
        return [requirement]

    def enforce(self, candidate: CandidateFinding, request: EligibilityRequest) -> EligibilityResult:
        """Downgrade a CONFIRMED candidate that fails the gate."""
        result = self.check(request)
        if candidate.status is FindingStatus.CONFIRMED and not result.eligible:
            logger.debug(
                "[eligibility] %s on %s downgraded, missing=%s",
                candidate.type.value, candidate.observation_id, ",".join(result.missing),
            )
            candidate.status = FindingStatus.SUSPECTED
            candidate.enrichment["confirmedEligibilityMissing"] = list(result.missing)
        return result
