"""Evidence bundle checks and the per-detector confidence heuristics."""

from typing import Dict, Iterable, List, Mapping, Optional

from truthgate.classification.state_context import StateContext
from truthgate.domain.models import EvidencePackage, Observation
from truthgate.scoring.confidence import clamp01, round_score

HEURISTIC_BASE = 0.6
HEURISTIC_EVIDENCE_BONUS = 0.1
HEURISTIC_CONTRADICTION_PENALTY = 0.2
EMPTY_OR_DISABLED_CAP = 0.3
NO_OP_CAP = 0.2

RUNTIME_NAV_BASE = 0.85
RUNTIME_NAV_ROUTE_BONUS = 0.05
RUNTIME_NAV_SCREENSHOT_BONUS = 0.05
RUNTIME_NAV_IFRAME_PENALTY = 0.1

def _lower(files: Iterable[str]) -> List[str]:
    return [str(f).lower() for f in files or ()]

def has_screenshot(files: Iterable[str]) -> bool:
    return any(f.endswith(".png") for f in _lower(files))

def has_dom_diff(files: Iterable[str]) -> bool:
    return any("dom_diff" in f for f in _lower(files))

def missing_state_evidence(files: Iterable[str]) -> List[str]:
    """Components of the before/after/diff bundle that are absent."""
    return list(EvidencePackage.from_files(files).missing_evidence)

def has_state_comparison_evidence(files: Iterable[str]) -> bool:
    return not missing_state_evidence(files)

def state_evidence_paths(files: Iterable[str]) -> Dict[str, Optional[str]]:
    """Pick the before/after screenshots and the DOM diff out of the evidence files."""
    out = {"before_screenshot": None, "after_screenshot": None, "dom_diff": None}
    for f in files or ():
        lf = str(f).lower()
        if out["before_screenshot"] is None and "before" in lf and lf.endswith(".png"):
            out["before_screenshot"] = f
        elif out["after_screenshot"] is None and "after" in lf and lf.endswith(".png"):
            out["after_screenshot"] = f
        elif out["dom_diff"] is None and "dom_diff" in lf and lf.endswith(".json"):
            out["dom_diff"] = f
    return out

def has_route_evidence(route_data: Optional[Mapping]) -> bool:
    if not route_data:
        return False
    if route_data.get("before") is not None or route_data.get("after") is not None:
        return True
    return bool(route_data.get("transitions"))

def heuristic_confidence(observation: Observation, context: Optional[StateContext] = None) -> float:
    """Signal/evidence heuristic shared by the detectors."""
    signals = observation.signals or {}
    files = observation.evidence_files
    context = context or StateContext()
    score = HEURISTIC_BASE

    if not (context.is_empty or context.is_disabled):
        if has_screenshot(files):
            score += HEURISTIC_EVIDENCE_BONUS
        if has_dom_diff(files):
            score += HEURISTIC_EVIDENCE_BONUS
        if signals.get("correlatedNetworkActivity") is True:
            score += HEURISTIC_EVIDENCE_BONUS

    if signals.get("consoleErrors"):
        score -= HEURISTIC_CONTRADICTION_PENALTY
    if signals.get("blockedWrites"):
        score -= HEURISTIC_CONTRADICTION_PENALTY

    if context.is_no_op:
        score = min(score, NO_OP_CAP)
    elif context.is_empty or context.is_disabled:
        score = min(score, EMPTY_OR_DISABLED_CAP)

    return round_score(clamp01(score))

def runtime_navigation_confidence(observation: Observation) -> float:
    """Confidence for a navigation discovered at runtime rather than in source."""
    signals = observation.signals or {}
    score = RUNTIME_NAV_BASE
    if has_route_evidence(observation.route_data):
        score += RUNTIME_NAV_ROUTE_BONUS
    if has_screenshot(observation.evidence_files):
        score += RUNTIME_NAV_SCREENSHOT_BONUS
    if signals.get("consoleErrors"):
        score -= HEURISTIC_CONTRADICTION_PENALTY
    if signals.get("blockedWrites"):
        score -= HEURISTIC_CONTRADICTION_PENALTY
    context = (observation.runtime_navigation or {}).get("context") or {}
    if context.get("kind") == "iframe":
        score -= RUNTIME_NAV_IFRAME_PENALTY
    return round_score(clamp01(score))
