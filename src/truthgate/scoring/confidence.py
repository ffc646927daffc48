# truthgate/scoring/confidence.py
"""Five-pillar confidence scoring with bucket-gated reasons and truth locks."""

import math
import logging
from typing import Dict, Any, Iterable, List, Mapping, Optional, Tuple

from truthgate.config.settings import ConfidencePolicy
from truthgate.domain.models import (
    CandidateFinding,
    ConfidenceLevel,
    DeterminismVerdict,
    EvidencePackage,
    Expectation,
    FindingStatus,
    Observation,
)

from .models import ConfidenceResult
from .reasons import ReasonCode, split_reasons

logger = logging.getLogger(__name__)

ANALYTICS_PATTERNS = (
    "/analytics",
    "/beacon",
    "/tracking",
    "/pixel",
    "google-analytics",
    "segment.io",
    "mixpanel",
)
REQUIRED_SENSORS = {
    "network": ("network",),
    "console": ("console", "consoleErrors"),
    "ui": ("uiSignals",),
}
MAX_REASONS = 10
MAX_TOP_REASONS = 4

def _isnum(x):
    return isinstance(x, (int, float)) and not isinstance(x, bool) and not math.isnan(x)

def numeric_or(x, default=0.0):
    return x if _isnum(x) else default

def clamp01(x: float) -> float:
    return 0.0 if not _isnum(x) else max(0.0, min(1.0, x))

def round_score(x: float, digits: int = 6) -> float:
    """Round away float noise so identical inputs give identical output."""
    return round(clamp01(x), digits)

def level_for(score: float, thresholds: Optional[Mapping[str, float]] = None) -> ConfidenceLevel:
    """HIGH iff score >= high, MEDIUM iff medium <= score < high, else UNPROVEN."""
    thresholds = thresholds or {"high": 0.85, "medium": 0.60}
    if score >= thresholds["high"]:
        return ConfidenceLevel.HIGH
    if score >= thresholds["medium"]:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.UNPROVEN

def apply_truth_locks(
    score: float,
    status: FindingStatus,
    verdict: DeterminismVerdict,
    package_complete: bool,
    policy: ConfidencePolicy,
) -> Tuple[float, List[ReasonCode]]:
    """Cap a score on non-determinism or on a CONFIRMED claim with incomplete evidence."""
    locks = policy.truth_locks
    applied = []
    if verdict is DeterminismVerdict.NON_DETERMINISTIC:
        ceiling = locks["nonDeterministicMaxConfidence"]
        if score > ceiling:
            score = ceiling
            applied.append(ReasonCode.TRUTH_LOCK_NON_DETERMINISTIC_CAP)
    if status is FindingStatus.CONFIRMED and locks.get("evidenceCompleteRequired", True) \
            and not package_complete:
        ceiling = locks["evidenceIncompleteMaxConfidence"]
        if score > ceiling:
            score = ceiling
            applied.append(ReasonCode.TRUTH_LOCK_EVIDENCE_INCOMPLETE)
    return clamp01(score), applied

def network_signals(signals: Mapping) -> Mapping:
    network = signals.get("network")
    return network if isinstance(network, Mapping) else {}

def _network_urls(signals: Mapping) -> List[str]:
    network = network_signals(signals)
    urls = list(network.get("urls") or [])
    for request in network.get("requests") or []:
        if isinstance(request, Mapping) and request.get("url"):
            urls.append(request["url"])
    return [str(u).lower() for u in urls]

def is_analytics_only(signals: Mapping) -> bool:
    """A single request that looks like analytics or beacon traffic."""
    urls = _network_urls(signals)
    if len(urls) != 1:
        return False
    return any(p in urls[0] for p in ANALYTICS_PATTERNS)

def ui_feedback_score(signals: Mapping) -> float:
    feedback = signals.get("uiFeedback")
    if not isinstance(feedback, Mapping):
        return 0.0
    return clamp01(numeric_or(feedback.get("overallUiFeedbackScore", feedback.get("score")), 0.0))

def console_errors_present(signals: Mapping) -> bool:
    if signals.get("consoleErrors"):
        return True
    console = signals.get("console")
    return isinstance(console, Mapping) and numeric_or(console.get("errorCount"), 0) > 0

class ConfidenceEngine:
    """Weighted pillar scorer. Never raises on odd input; always clamps."""

    def __init__(self, policy: Optional[ConfidencePolicy] = None):
        self.policy = policy or ConfidencePolicy()

    # ---------- pillars ----------
    def promise_strength(self, expectation: Optional[Expectation]) -> Tuple[float, List[ReasonCode]]:
        scores = self.policy.base_scores
        if expectation is None:
            return 0.0, [ReasonCode.PROMISE_UNKNOWN]
        proof = (expectation.proof or "").upper()
        hint = numeric_or(expectation.confidence_hint, 0.0)
        if proof in ("PROVEN", "PROVEN_EXPECTATION"):
            return scores["promiseProven"], [ReasonCode.PROMISE_PROVEN]
        if proof == "AST_BASED":
            return scores["promiseObserved"], [ReasonCode.PROMISE_AST_BASED]
        if proof == "OBSERVED" or hint >= 0.8:
            return scores["promiseObserved"], [ReasonCode.PROMISE_OBSERVED]
        if hint >= 0.5:
            return scores["promiseWeak"], [ReasonCode.PROMISE_WEAK]
        return scores["promiseUnknown"], [ReasonCode.PROMISE_UNKNOWN]

    def observation_strength(self, signals: Mapping) -> Tuple[float, List[ReasonCode]]:
        scores = self.policy.base_scores
        network = network_signals(signals)
        score = 0.0
        reasons = []
        if signals.get("navigationChanged") is True or signals.get("routeChanged") is True:
            score += scores["urlChanged"]
            reasons.append(ReasonCode.OBS_URL_CHANGED)
        if signals.get("meaningfulDomChange") is True:
            score += scores["domChanged"]
            reasons.append(ReasonCode.OBS_DOM_CHANGED)
        if ui_feedback_score(signals) > self.policy.thresholds["uiFeedbackConfirmed"]:
            score += scores["uiFeedbackConfirmed"]
            reasons.append(ReasonCode.OBS_UI_FEEDBACK_CONFIRMED)
        if console_errors_present(signals):
            score += scores["consoleErrors"]
            reasons.append(ReasonCode.OBS_CONSOLE_ERRORS)
        failed = numeric_or(network.get("failedRequests"), 0) > 0
        if failed:
            score += scores["networkFailure"]
            reasons.append(ReasonCode.OBS_NETWORK_FAILURE)
        elif numeric_or(network.get("successfulRequests"), 0) > 0:
            score += scores["networkSuccess"]
            reasons.append(ReasonCode.OBS_NETWORK_SUCCESS)
        if not reasons:
            return 0.0, [ReasonCode.OBS_NO_SIGNALS]
        return min(1.0, score), reasons

    def correlation_quality(
            self,
            correlation: Mapping,
            expectation: Optional[Expectation]) -> Tuple[float, List[ReasonCode]]:
        scores = self.policy.base_scores
        score = scores["correlationBase"]
        reasons = []
        if correlation.get("timingAligned") is True:
            score += scores["timingAligned"]
            reasons.append(ReasonCode.CORR_TIMING_ALIGNED)
        if correlation.get("routeMatched") is True:
            score += scores["routeMatched"]
            reasons.append(ReasonCode.CORR_ROUTE_MATCHED)
        if correlation.get("requestMatched") is True:
            score += scores["requestMatched"]
            reasons.append(ReasonCode.CORR_REQUEST_MATCHED)
        if correlation.get("traceId") or (expectation is not None and expectation.source.file):
            score += scores["traceLinked"]
            reasons.append(ReasonCode.CORR_TRACE_LINKED)
        if score < self.policy.thresholds["weakCorrelation"]:
            reasons.append(ReasonCode.CORR_WEAK_CORRELATION)
        return min(1.0, score), reasons

    def guardrail_strength(self, finding_type: str, signals: Mapping) -> Tuple[float, List[ReasonCode]]:
        scores = self.policy.base_scores
        score = 1.0
        reasons = []
        url_changed = signals.get("navigationChanged") is True or signals.get("routeChanged") is True
        ui_changed = signals.get("meaningfulDomChange") is True or signals.get("meaningfulUIChange") is True
        silent_claim = "silent_failure" in finding_type
        feedback = ui_feedback_score(signals)

        if is_analytics_only(signals) and not url_changed and not ui_changed:
            score -= scores["analyticsPenalty"]
            reasons.append(ReasonCode.GUARD_ANALYTICS_FILTERED)
        if signals.get("shallowRouting") is True and not url_changed:
            score -= scores["shallowRoutingPenalty"]
            reasons.append(ReasonCode.GUARD_SHALLOW_ROUTING)
        network = network_signals(signals)
        if silent_claim and numeric_or(network.get("successfulRequests"), 0) > 0 and not ui_changed:
            score -= scores["networkSuccessNoUiPenalty"]
            reasons.append(ReasonCode.GUARD_NETWORK_SUCCESS_NO_UI)
        if silent_claim and feedback > self.policy.thresholds["uiFeedbackConfirmed"]:
            score -= scores["uiFeedbackContradictionPenalty"]
            reasons.append(ReasonCode.GUARD_UI_FEEDBACK_PRESENT)
        if score < self.policy.thresholds["contradiction"]:
            reasons.append(ReasonCode.GUARD_CONTRADICTION_DETECTED)
        return max(0.0, score), reasons

    def evidence_completeness(
            self,
            evidence_files: Iterable[str],
            signals: Mapping,
            correlation: Mapping,
            expectation: Optional[Expectation]) -> Tuple[float, List[ReasonCode]]:
        scores = self.policy.base_scores
        files = [str(f).lower() for f in evidence_files or ()]
        score = 0.0
        reasons = []
        before = any("before" in f and f.endswith(".png") for f in files)
        after = any("after" in f and f.endswith(".png") for f in files)
        if before and after:
            score += scores["screenshots"]
            reasons.append(ReasonCode.EVIDENCE_SCREENSHOTS)
        if correlation.get("traceId"):
            score += scores["traces"]
            reasons.append(ReasonCode.EVIDENCE_TRACES)
        if signals:
            score += scores["signals"]
            reasons.append(ReasonCode.EVIDENCE_SIGNALS)
        if expectation is not None and expectation.source.file and expectation.source.line is not None:
            score += scores["snippets"]
            reasons.append(ReasonCode.EVIDENCE_SNIPPETS)
        if score < self.policy.thresholds["incompleteEvidence"]:
            reasons.append(ReasonCode.EVIDENCE_INCOMPLETE)
        return min(1.0, score), reasons

    @staticmethod
    def sensor_reasons(signals: Mapping) -> Tuple[bool, List[ReasonCode]]:
        """(any required sensor missing, reasons)."""
        present = {
            name: any(k in signals for k in keys)
            for name, keys in REQUIRED_SENSORS.items()
        }
        reasons = []
        if present["network"]:
            reasons.append(ReasonCode.SENSOR_NETWORK_PRESENT)
        if present["console"]:
            reasons.append(ReasonCode.SENSOR_CONSOLE_PRESENT)
        if present["ui"]:
            reasons.append(ReasonCode.SENSOR_UI_PRESENT)
        if "uiFeedback" in signals:
            reasons.append(ReasonCode.SENSOR_UI_FEEDBACK_PRESENT)
        missing = not all(present.values())
        if missing:
            reasons.append(ReasonCode.SENSOR_MISSING)
        return missing, reasons

    # ---------- scoring ----------
    def score(
        self,
        finding_type: str,
        *,
        status: FindingStatus = FindingStatus.SUSPECTED,
        expectation: Optional[Expectation] = None,
        signals: Optional[Mapping] = None,
        correlation: Optional[Mapping] = None,
        evidence_files: Iterable[str] = (),
        determinism_verdict: DeterminismVerdict = DeterminismVerdict.DETERMINISTIC,
        evidence_package: Optional[EvidencePackage] = None,
    ) -> ConfidenceResult:
        signals = signals or {}
        correlation = correlation or {}
        evidence_files = tuple(evidence_files or ())
        if evidence_package is None:
            evidence_package = EvidencePackage.from_files(evidence_files)
        weights = self.policy.weights

        pillar_results = {
            "promiseStrength": self.promise_strength(expectation),
            "observationStrength": self.observation_strength(signals),
            "correlationQuality": self.correlation_quality(correlation, expectation),
            "guardrails": self.guardrail_strength(finding_type, signals),
            "evidenceCompleteness": self.evidence_completeness(
                evidence_files, signals, correlation, expectation),
        }
        pillars = {name: round_score(value) for name, (value, _) in pillar_results.items()}
        contributors: Dict[str, float] = {
            f"{name}*{weights[name]:.2f}": round(weights[name] * value, 4)
            for name, (value, _) in pillar_results.items()
        }
        codes: List[ReasonCode] = [c for _, (_, rs) in pillar_results.items() for c in rs]

        base = sum(weights[name] * value for name, (value, _) in pillar_results.items())
        penalties: Dict[str, float] = {}
        if pillar_results["guardrails"][0] < self.policy.thresholds["contradictionPenaltyBelow"]:
            penalties["contradiction"] = self.policy.truth_locks["contradictionPenalty"]
        sensor_missing, sensor_codes = self.sensor_reasons(signals)
        codes.extend(sensor_codes)
        if sensor_missing:
            penalties["missing_sensor"] = self.policy.missing_sensor_penalty

        score = clamp01(base - sum(penalties.values()))
        score, lock_codes = apply_truth_locks(
            score, status, determinism_verdict, evidence_package.is_complete, self.policy)
        codes.extend(lock_codes)
        score = round_score(score)

        core, advisory = split_reasons(codes)
        result = ConfidenceResult(
            score01=score,
            score100=int(round(100 * score)),
            level=level_for(score, self.policy.thresholds),
            reasons=core[:MAX_REASONS],
            advisory_reasons=advisory[:MAX_REASONS],
            top_reasons=core[:MAX_TOP_REASONS],
            pillars=pillars,
            contributors=contributors,
            penalties=penalties,
        )
        logger.debug(
            "[confidence] %s score=%.4f level=%s penalties=%s",
            finding_type, result.score01, result.level.value, penalties,
        )
        return result

    def score_candidate(
        self,
        candidate: CandidateFinding,
        observation: Optional[Observation],
        expectation: Optional[Expectation],
        determinism_verdict: DeterminismVerdict = DeterminismVerdict.DETERMINISTIC,
        evidence_package: Optional[EvidencePackage] = None,
    ) -> ConfidenceResult:
        """Score a detector candidate against the observation that produced it."""
        files = observation.evidence_files if observation is not None else ()
        correlation = (observation.evidence.get("correlation") or {}) if observation is not None else {}
        return self.score(
            candidate.type.value,
            status=candidate.status,
            expectation=expectation,
            signals=candidate.signals,
            correlation=correlation,
            evidence_files=files,
            determinism_verdict=determinism_verdict,
            evidence_package=evidence_package,
        )
