"""Ordered guardrail rule evaluation over an already-scored candidate."""

import logging
from typing import Mapping, Optional

from truthgate.config.settings import GuardrailResolution, GuardrailsPolicy
from truthgate.domain.models import CandidateFinding, EvidencePackage, FindingStatus
from truthgate.scoring.confidence import round_score

from .models import ACTION_SEVERITY, AppliedRule, GuardrailsReport
from .rules import RuleContext, evaluate_rule

logger = logging.getLogger(__name__)

ACTION_PRECEDENCE = {"INFO": 1, "DOWNGRADE": 2, "BLOCK": 3}

class GuardrailsEngine:
    """
    Evaluates policy rules in natural id order (GUARD-2 before GUARD-10).
    A rule can only hold the status or lower it; it never raises it.
    """

    def __init__(self, policy: Optional[GuardrailsPolicy] = None):
        self.policy = policy or GuardrailsPolicy()

    def apply(
        self,
        *,
        finding_type: str,
        status: FindingStatus,
        confidence: float,
        signals: Optional[Mapping] = None,
        evidence: Optional[Mapping] = None,
        evidence_package: Optional[EvidencePackage] = None,
    ) -> GuardrailsReport:
        ctx = RuleContext(
            finding_type=finding_type,
            status=status,
            signals=signals or {},
            evidence=evidence or {},
            evidence_package=evidence_package or EvidencePackage(is_complete=True),
        )
        report = GuardrailsReport(
            initial_status=status,
            final_status=status,
            initial_confidence=confidence,
            final_confidence=confidence,
        )

        rules = self.policy.ordered_rules
        winning_rank = 0
        for rule in rules:
            if not rule.applies_to_type(finding_type):
                continue
            outcome = evaluate_rule(rule.evaluation_type, ctx)
            if not outcome.applies:
                continue

            code = rule.code or rule.id
            message = rule.message or outcome.message
            report.applied_rules.append(AppliedRule(
                rule_id=rule.id,
                code=code,
                severity=ACTION_SEVERITY.get(rule.action, "WARNING"),
                message=message,
                category=rule.category,
                recommended_status=outcome.recommended_status,
                contradiction=outcome.contradiction,
            ))
            if outcome.contradiction:
                report.contradictions.append(code)
            if outcome.recommended_status is not None:
                if self.policy.resolution is GuardrailResolution.SEQUENTIAL:
                    report.recommended_status = outcome.recommended_status
                else:
                    rank = ACTION_PRECEDENCE.get(rule.action, 0)
                    if rank >= winning_rank:
                        winning_rank = rank
                        report.recommended_status = outcome.recommended_status
            if rule.confidence_delta:
                report.confidence_adjustments.append({
                    "ruleId": rule.id,
                    "delta": rule.confidence_delta,
                    "reason": message,
                })
                report.confidence_delta += rule.confidence_delta

        if report.recommended_status is not None:
            report.final_status = FindingStatus.lowest(status, report.recommended_status)
        report.confidence_delta = round(report.confidence_delta, 6)
        report.final_confidence = round_score(confidence + report.confidence_delta)
        report.policy_report = {
            "version": self.policy.version,
            "resolution": self.policy.resolution.value,
            "rulesEvaluated": len(rules),
            "rulesApplied": len(report.applied_rules),
        }
        if report.applied_rules:
            logger.debug(
                "[guardrails] %s %s -> %s via %s",
                finding_type, status.value, report.final_status.value,
                ",".join(r.rule_id for r in report.applied_rules),
            )
        return report

    def apply_to_candidate(
        self,
        candidate: CandidateFinding,
        evidence_package: Optional[EvidencePackage] = None,
        confidence: Optional[float] = None,
    ) -> GuardrailsReport:
        return self.apply(
            finding_type=candidate.type.value,
            status=candidate.status,
            confidence=candidate.confidence if confidence is None else confidence,
            signals=candidate.signals,
            evidence=candidate.evidence,
            evidence_package=evidence_package,
        )
