"""Confidence reason codes and the core buckets that gate them."""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

class ReasonCode(Enum):
    # promise strength
    PROMISE_AST_BASED = "PROMISE_AST_BASED"
    PROMISE_PROVEN = "PROMISE_PROVEN"
    PROMISE_OBSERVED = "PROMISE_OBSERVED"
    PROMISE_WEAK = "PROMISE_WEAK"
    PROMISE_UNKNOWN = "PROMISE_UNKNOWN"
    # observation strength
    OBS_URL_CHANGED = "OBS_URL_CHANGED"
    OBS_DOM_CHANGED = "OBS_DOM_CHANGED"
    OBS_UI_FEEDBACK_CONFIRMED = "OBS_UI_FEEDBACK_CONFIRMED"
    OBS_CONSOLE_ERRORS = "OBS_CONSOLE_ERRORS"
    OBS_NETWORK_FAILURE = "OBS_NETWORK_FAILURE"
    OBS_NETWORK_SUCCESS = "OBS_NETWORK_SUCCESS"
    OBS_NO_SIGNALS = "OBS_NO_SIGNALS"
    # correlation quality
    CORR_TIMING_ALIGNED = "CORR_TIMING_ALIGNED"
    CORR_ROUTE_MATCHED = "CORR_ROUTE_MATCHED"
    CORR_REQUEST_MATCHED = "CORR_REQUEST_MATCHED"
    CORR_TRACE_LINKED = "CORR_TRACE_LINKED"
    CORR_WEAK_CORRELATION = "CORR_WEAK_CORRELATION"
    # internal guardrails
    GUARD_ANALYTICS_FILTERED = "GUARD_ANALYTICS_FILTERED"
    GUARD_SHALLOW_ROUTING = "GUARD_SHALLOW_ROUTING"
    GUARD_NETWORK_SUCCESS_NO_UI = "GUARD_NETWORK_SUCCESS_NO_UI"
    GUARD_UI_FEEDBACK_PRESENT = "GUARD_UI_FEEDBACK_PRESENT"
    GUARD_CONTRADICTION_DETECTED = "GUARD_CONTRADICTION_DETECTED"
    # evidence completeness
    EVIDENCE_SCREENSHOTS = "EVIDENCE_SCREENSHOTS"
    EVIDENCE_TRACES = "EVIDENCE_TRACES"
    EVIDENCE_SIGNALS = "EVIDENCE_SIGNALS"
    EVIDENCE_SNIPPETS = "EVIDENCE_SNIPPETS"
    EVIDENCE_INCOMPLETE = "EVIDENCE_INCOMPLETE"
    # sensors
    SENSOR_NETWORK_PRESENT = "SENSOR_NETWORK_PRESENT"
    SENSOR_CONSOLE_PRESENT = "SENSOR_CONSOLE_PRESENT"
    SENSOR_UI_PRESENT = "SENSOR_UI_PRESENT"
    SENSOR_UI_FEEDBACK_PRESENT = "SENSOR_UI_FEEDBACK_PRESENT"
    SENSOR_MISSING = "SENSOR_MISSING"
    # truth locks
    TRUTH_LOCK_NON_DETERMINISTIC_CAP = "TRUTH_LOCK_NON_DETERMINISTIC_CAP"
    TRUTH_LOCK_EVIDENCE_INCOMPLETE = "TRUTH_LOCK_EVIDENCE_INCOMPLETE"


CORE_BUCKETS: Dict[str, Tuple[ReasonCode, ...]] = {
    "critical_evidence": (
        ReasonCode.PROMISE_PROVEN,
        ReasonCode.OBS_UI_FEEDBACK_CONFIRMED,
        ReasonCode.OBS_NETWORK_FAILURE,
    ),
    "multi_source_corroboration": (
        ReasonCode.CORR_TIMING_ALIGNED,
        ReasonCode.CORR_ROUTE_MATCHED,
        ReasonCode.CORR_REQUEST_MATCHED,
    ),
    "asset_criticality": (
        ReasonCode.GUARD_SHALLOW_ROUTING,
        ReasonCode.EVIDENCE_TRACES,
    ),
    "known_abuse_indicators": (
        ReasonCode.GUARD_ANALYTICS_FILTERED,
        ReasonCode.OBS_NETWORK_SUCCESS,
    ),
    "exploitability_indicator": (
        ReasonCode.OBS_DOM_CHANGED,
        ReasonCode.OBS_CONSOLE_ERRORS,
    ),
    "privilege_escalation_path": (
        ReasonCode.OBS_URL_CHANGED,
        ReasonCode.CORR_TRACE_LINKED,
    ),
    "impact_radius": (
        ReasonCode.EVIDENCE_SCREENSHOTS,
        ReasonCode.EVIDENCE_SNIPPETS,
    ),
}

_BUCKET_OF = {code: bucket for bucket, codes in CORE_BUCKETS.items() for code in codes}

def bucket_for(code: ReasonCode) -> Optional[str]:
    """Core bucket of a reason code, or None when it is advisory."""
    return _BUCKET_OF.get(code)

def split_reasons(codes: Iterable[ReasonCode]) -> Tuple[List[str], List[str]]:
    """Partition codes into (core, advisory), keeping first-seen order without repeats."""
    core: List[str] = []
    advisory: List[str] = []
    for code in codes:
        target = core if bucket_for(code) else advisory
        if code.value not in target:
            target.append(code.value)
    return core, advisory
