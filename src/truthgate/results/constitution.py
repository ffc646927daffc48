"""Final invariant gate over finished findings."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from truthgate.domain.models import Finding, FindingStatus, FindingType, Severity
from truthgate.scoring.confidence import numeric_or

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "id", "type", "status", "severity", "confidence",
    "promise", "observed", "evidence", "impact",
)
ALLOWED_STATUSES = frozenset(s.value for s in FindingStatus)
ALLOWED_SEVERITIES = frozenset(s.value for s in Severity)
ALLOWED_TYPES = frozenset(t.value for t in FindingType)

# evidence keys that show what actually happened, per category
STRONG_CATEGORIES = {
    "navigation": ("navigation_changed", "navigationChanged", "route_data", "beforeUrl", "afterUrl"),
    "meaningful_dom": ("meaningful_dom_change", "meaningfulDomChange", "dom_diff", "domDiff"),
    "feedback": ("feedback_seen", "feedbackSeen", "aria_live", "statusMessage"),
    "network": ("network", "network_attempt", "correlated_network_activity", "networkRequests"),
    "screenshots": ("before_screenshot", "after_screenshot"),
}

@dataclass
class ValidationSummary:
    """Outcome of validating a batch of findings."""
    valid: List[Finding] = field(default_factory=list)
    dropped: List[Dict[str, Any]] = field(default_factory=list)
    downgraded: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": len(self.valid),
            "dropped": list(self.dropped),
            "downgraded": list(self.downgraded),
        }


def _non_empty_str(value) -> bool:
    return isinstance(value, str) and len(value) > 0

def valid_promise_shape(promise) -> bool:
    if not isinstance(promise, Mapping):
        return False
    if _non_empty_str(promise.get("kind")) and _non_empty_str(promise.get("value")):
        return True
    return _non_empty_str(promise.get("type")) and any(
        _non_empty_str(promise.get(k)) for k in ("expected", "actual", "expected_signal")
    )

def evidence_categories(evidence: Mapping) -> List[str]:
    """Strong evidence categories captured in an evidence object."""
    found = []
    for category, keys in STRONG_CATEGORIES.items():
        if category == "screenshots":
            if evidence.get("before_screenshot") and evidence.get("after_screenshot"):
                found.append(category)
        elif any(k in evidence for k in keys):
            found.append(category)
    return found

def ambiguity_reasons(evidence: Mapping, signals: Mapping) -> List[str]:
    reasons = []
    if evidence.get("blocked_writes") or signals.get("blockedWrites"):
        reasons.append("blocked_write")
    happened = {
        category: any(evidence.get(k) for k in STRONG_CATEGORIES[category])
        for category in ("navigation", "meaningful_dom", "feedback", "network")
    }
    if (evidence.get("console_errors") or signals.get("consoleErrors")) and not any(happened.values()):
        reasons.append("console_only")
    if happened["network"] and not (happened["navigation"] or happened["meaningful_dom"] or happened["feedback"]):
        reasons.append("network_only")
    return reasons


class ConstitutionValidator:
    """
    Drops findings that break the output contract, downgrades CONFIRMED
    findings without strong evidence, and records ambiguity reasons.
    """

    def check(self, data: Mapping) -> List[str]:
        """Reasons the finding must be dropped; empty when it may pass."""
        missing = [f for f in REQUIRED_FIELDS if f not in data]
        if missing:
            return [f"missing required field: {f}" for f in missing]

        reasons = []
        if not _non_empty_str(data["id"]) or not data["id"].strip():
            reasons.append("id must be a non-empty string")
        if data["type"] not in ALLOWED_TYPES:
            reasons.append(f"type not allowed: {data['type']!r}")
        if data["status"] not in ALLOWED_STATUSES:
            reasons.append(f"status not allowed: {data['status']!r}")
        if data["severity"] not in ALLOWED_SEVERITIES:
            reasons.append(f"severity not allowed: {data['severity']!r}")
        confidence = data["confidence"]
        if numeric_or(confidence, None) is None or not 0.0 <= confidence <= 1.0:
            reasons.append(f"confidence must be a number in [0, 1], got {confidence!r}")
        if not valid_promise_shape(data["promise"]):
            reasons.append("promise must include kind/value or type/expected")
        if not isinstance(data["observed"], Mapping):
            reasons.append("observed must be an object")
        if not isinstance(data["impact"], Mapping):
            reasons.append("impact must be an object")
        evidence = data["evidence"]
        if not isinstance(evidence, Mapping) or not evidence:
            reasons.append("evidence must be a non-empty object")
        if not data.get("signals") and not data.get("expectationId"):
            reasons.append("finding needs signals or a matched expectation")
        return reasons

    def validate(self, finding: Union[Finding, Mapping]) -> Tuple[Optional[Finding], List[str], bool]:
        """
        Validate one finding.

        Returns (finding or None, drop reasons, downgraded). A dropped finding
        comes back as None with its reasons.
        """
        data = finding.to_dict() if isinstance(finding, Finding) else finding
        if not isinstance(data, Mapping):
            return None, ["finding is not an object"], False
        reasons = self.check(data)
        if reasons:
            return None, reasons, False

        evidence = data["evidence"]
        enrichment = dict(data.get("enrichment") or {})
        categories = evidence_categories(evidence)
        ambiguities = ambiguity_reasons(evidence, data.get("signals") or {})
        enrichment["evidence_categories"] = categories
        if ambiguities:
            enrichment["ambiguity_reasons"] = ambiguities

        status = data["status"]
        downgraded = False
        if status == FindingStatus.CONFIRMED.value and not categories:
            status = FindingStatus.SUSPECTED.value
            enrichment["evidence_law_downgrade"] = "CONFIRMED requires a strong evidence category"
            downgraded = True

        result = finding if isinstance(finding, Finding) else Finding.from_dict(data)
        return replace(result, status=FindingStatus(status), enrichment=enrichment), [], downgraded

    def batch_validate(self, findings: Iterable[Union[Finding, Mapping]]) -> ValidationSummary:
        summary = ValidationSummary()
        for finding in findings:
            result, reasons, downgraded = self.validate(finding)
            if result is None:
                finding_id = finding.id if isinstance(finding, Finding) else (
                    finding.get("id") if isinstance(finding, Mapping) else None)
                summary.dropped.append({"id": finding_id, "reasons": reasons})
                logger.info("[constitution] dropped %s: %s", finding_id, "; ".join(reasons))
                continue
            if downgraded:
                summary.downgraded.append({"id": result.id, "status": result.status.value})
                logger.info("[constitution] downgraded %s to %s", result.id, result.status.value)
            summary.valid.append(result)
        return summary
