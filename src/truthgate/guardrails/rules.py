"""Guardrail rule evaluators, keyed by ``evaluation.type``."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional
from urllib.parse import urlsplit

from truthgate.domain.models import EvidencePackage, FindingStatus
from truthgate.scoring.confidence import (
    console_errors_present,
    is_analytics_only,
    ui_feedback_score,
    network_signals,
    numeric_or,
)

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class RuleContext:
    """What a rule may inspect: the finding, its signals and its evidence package."""
    finding_type: str
    status: FindingStatus
    signals: Mapping = field(default_factory=dict)
    evidence: Mapping = field(default_factory=dict)
    evidence_package: EvidencePackage = field(default_factory=lambda: EvidencePackage(is_complete=True))

    @property
    def is_confirmed(self) -> bool:
        return self.status is FindingStatus.CONFIRMED

@dataclass(frozen=True)
class RuleOutcome:
    applies: bool
    message: str = ""
    contradiction: bool = False
    recommended_status: Optional[FindingStatus] = None

NOT_APPLICABLE = RuleOutcome(applies=False)


def _ui_changed(signals: Mapping) -> bool:
    ui = signals.get("uiSignals") or {}
    return (
        ui.get("changed") is True
        or signals.get("meaningfulDomChange") is True
        or signals.get("meaningfulUIChange") is True
    )

def network_success_no_ui(ctx: RuleContext) -> RuleOutcome:
    if not ctx.is_confirmed:
        return NOT_APPLICABLE
    if "silent_failure" not in ctx.finding_type and "network" not in ctx.finding_type:
        return NOT_APPLICABLE
    network = network_signals(ctx.signals)
    failed = numeric_or(network.get("failedRequests"), 0)
    succeeded = numeric_or(network.get("successfulRequests"), 0) > 0 \
        or ctx.signals.get("correlatedNetworkActivity") is True
    if not succeeded or failed > 0:
        return NOT_APPLICABLE
    if _ui_changed(ctx.signals) or ui_feedback_score(ctx.signals) >= 0.3:
        return NOT_APPLICABLE
    if console_errors_present(ctx.signals):
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message="Network request succeeded without errors but no UI change followed",
        contradiction=True,
        recommended_status=FindingStatus.SUSPECTED,
    )

def analytics_only(ctx: RuleContext) -> RuleOutcome:
    if not ctx.is_confirmed or not is_analytics_only(ctx.signals):
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message="Only analytics or beacon traffic was observed",
        recommended_status=FindingStatus.INFORMATIONAL,
    )

def _hash_only_transition(route_data: Mapping) -> bool:
    before, after = route_data.get("before"), route_data.get("after")
    if not isinstance(before, str) or not isinstance(after, str) or before == after:
        return False
    b, a = urlsplit(before), urlsplit(after)
    return (b.scheme, b.netloc, b.path, b.query) == (a.scheme, a.netloc, a.path, a.query)

def shallow_routing(ctx: RuleContext) -> RuleOutcome:
    if not ctx.is_confirmed:
        return NOT_APPLICABLE
    if "navigation" not in ctx.finding_type and "route" not in ctx.finding_type:
        return NOT_APPLICABLE
    url_changed = ctx.signals.get("navigationChanged") is True or ctx.signals.get("routeChanged") is True
    hash_only = _hash_only_transition(ctx.evidence.get("route_data") or {})
    shallow = ctx.signals.get("shallowRouting") is True and not url_changed
    if not (hash_only or shallow):
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message="Only the hash or shallow route state changed",
        contradiction=True,
        recommended_status=FindingStatus.SUSPECTED,
    )

def ui_feedback_present(ctx: RuleContext) -> RuleOutcome:
    if not ctx.is_confirmed or "silent" not in ctx.finding_type:
        return NOT_APPLICABLE
    ui = ctx.signals.get("uiSignals") or {}
    visible = ui_feedback_score(ctx.signals) > 0.5 or any(
        ui.get(k) is True for k in ("hasLoadingIndicator", "hasDialog", "hasErrorSignal", "changed")
    )
    if not visible:
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message="UI feedback was visible to the user",
        contradiction=True,
        recommended_status=FindingStatus.SUSPECTED,
    )

def interaction_blocked(ctx: RuleContext) -> RuleOutcome:
    if not ctx.is_confirmed or "silent_failure" not in ctx.finding_type:
        return NOT_APPLICABLE
    blocked = (
        ctx.signals.get("interactionBlocked") is True
        or ctx.signals.get("elementDisabled") is True
        or ctx.evidence.get("interaction_blocked") is True
    )
    if not blocked:
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message="Interaction was blocked by a disabled control",
        recommended_status=FindingStatus.INFORMATIONAL,
    )

def validation_present(ctx: RuleContext) -> RuleOutcome:
    if not ctx.is_confirmed:
        return NOT_APPLICABLE
    if not any(k in ctx.finding_type for k in ("validation", "form", "submission")):
        return NOT_APPLICABLE
    ui = ctx.signals.get("uiSignals") or {}
    if ctx.signals.get("validationFeedback") is not True and ui.get("validationFeedbackDetected") is not True:
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message="Validation feedback was shown to the user",
        contradiction=True,
        recommended_status=FindingStatus.SUSPECTED,
    )

def contradict_evidence(ctx: RuleContext) -> RuleOutcome:
    package = ctx.evidence_package
    if not ctx.is_confirmed or package.is_complete or not package.missing_evidence:
        return NOT_APPLICABLE
    return RuleOutcome(
        applies=True,
        message=f"Evidence package incomplete: missing {', '.join(package.missing_evidence)}",
        contradiction=True,
        recommended_status=FindingStatus.SUSPECTED,
    )


EVALUATORS: Dict[str, Callable[[RuleContext], RuleOutcome]] = {
    "network_success_no_ui": network_success_no_ui,
    "analytics_only": analytics_only,
    "shallow_routing": shallow_routing,
    "ui_feedback_present": ui_feedback_present,
    "interaction_blocked": interaction_blocked,
    "validation_present": validation_present,
    "contradict_evidence": contradict_evidence,
}

def evaluate_rule(evaluation_type: str, ctx: RuleContext) -> RuleOutcome:
    """Dispatch on evaluation type. Unknown types are a no-op here."""
    evaluator = EVALUATORS.get(evaluation_type)
    if evaluator is None:
        logger.warning("[guardrails] Unknown evaluation type %r ignored", evaluation_type)
        return NOT_APPLICABLE
    return evaluator(ctx)
