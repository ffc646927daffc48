import logging

import pytest

from truthgate.config.settings import GuardrailResolution, GuardrailRule, GuardrailsPolicy
from truthgate.domain.models import (
    CandidateFinding,
    EvidencePackage,
    FindingStatus,
    FindingType,
    Severity,
)
from truthgate.guardrails import GuardrailsEngine, RuleContext, evaluate_rule

DEAD = FindingType.DEAD_INTERACTION.value
NAV = FindingType.BROKEN_NAVIGATION.value
SUBMISSION = FindingType.SILENT_SUBMISSION.value
ANALYTICS = {"network": {"urls": ["https://example.com/analytics/collect"]}}
INCOMPLETE = EvidencePackage(is_complete=False, missing_evidence=("dom_diff",))


@pytest.fixture
def engine():
    return GuardrailsEngine()


def confirmed(engine, finding_type=DEAD, confidence=0.9, **kwargs):
    return engine.apply(finding_type=finding_type, status=FindingStatus.CONFIRMED, confidence=confidence, **kwargs)


class TestDefaultPolicy:

    def test_network_success_without_ui_change(self, engine):
        report = confirmed(engine, signals={"correlatedNetworkActivity": True})
        assert [r.rule_id for r in report.applied_rules] == ["GUARD-001"]
        assert report.final_status is FindingStatus.SUSPECTED
        assert report.final_confidence == pytest.approx(0.75)
        assert report.confidence_delta == pytest.approx(-0.15)
        assert report.contradictions == ["GUARD_NETWORK_SUCCESS_NO_UI"]
        assert report.was_downgraded
        assert report.policy_report == {
            "version": 1,
            "resolution": "sequential",
            "rulesEvaluated": 7,
            "rulesApplied": 1,
        }

    def test_failed_requests_do_not_trigger(self, engine):
        report = confirmed(engine, signals={"network": {"successfulRequests": 1, "failedRequests": 1}})
        assert report.applied_rules == []
        assert report.final_status is FindingStatus.CONFIRMED
        assert report.final_confidence == pytest.approx(0.9)

    def test_rules_only_touch_confirmed(self, engine):
        report = engine.apply(
            finding_type=DEAD,
            status=FindingStatus.SUSPECTED,
            confidence=0.6,
            signals={"correlatedNetworkActivity": True, **ANALYTICS},
            evidence_package=INCOMPLETE,
        )
        assert report.applied_rules == []
        assert report.final_status is FindingStatus.SUSPECTED

    def test_hash_only_route_change(self, engine):
        report = confirmed(
            engine, NAV, confidence=0.95,
            evidence={"route_data": {"before": "/docs#intro", "after": "/docs#usage"}},
        )
        assert [r.code for r in report.applied_rules] == ["GUARD_SHALLOW_ROUTING"]
        assert report.final_status is FindingStatus.SUSPECTED
        assert report.final_confidence == pytest.approx(0.75)

    def test_path_change_is_not_shallow(self, engine):
        report = confirmed(engine, NAV, evidence={"route_data": {"before": "/docs#a", "after": "/blog#a"}})
        assert report.applied_rules == []

    def test_validation_feedback_on_submission(self, engine):
        report = confirmed(engine, SUBMISSION, confidence=0.8, signals={"uiSignals": {"validationFeedbackDetected": True}})
        assert [r.rule_id for r in report.applied_rules] == ["GUARD-006"]
        assert report.final_status is FindingStatus.SUSPECTED

    def test_visible_feedback_on_silent_claim(self, engine):
        report = confirmed(engine, signals={"uiSignals": {"hasDialog": True}})
        assert [r.rule_id for r in report.applied_rules] == ["GUARD-004"]

    def test_incomplete_evidence_blocks_confirmed(self, engine):
        report = confirmed(engine, evidence_package=EvidencePackage.from_files([]))
        rule = report.applied_rules[0]
        assert rule.rule_id == "GUARD-007"
        assert rule.severity == "BLOCK_CONFIRMED"
        assert rule.message == "Evidence package is incomplete; CONFIRMED is not allowed"
        assert report.final_status is FindingStatus.SUSPECTED

    def test_blocked_interaction_is_informational(self, engine):
        report = confirmed(engine, signals={"interactionBlocked": True})
        assert report.final_status is FindingStatus.INFORMATIONAL
        assert report.contradictions == []
        assert report.applied_rules[0].severity == "INFORMATIONAL"

    def test_confidence_is_clamped(self, engine):
        report = confirmed(engine, confidence=0.1, signals={"interactionBlocked": True, **ANALYTICS})
        assert report.confidence_delta == pytest.approx(-0.4)
        assert report.final_confidence == 0.0

    def test_report_dict(self, engine):
        out = confirmed(engine, signals={"correlatedNetworkActivity": True}).as_dict()
        assert set(out) == {
            "appliedRules", "contradictions", "recommendedStatus", "confidenceAdjustments",
            "confidenceDelta", "finalDecision", "policyReport",
        }
        assert out["recommendedStatus"] == "SUSPECTED"
        assert out["appliedRules"][0]["ruleId"] == "GUARD-001"
        assert out["confidenceAdjustments"][0]["delta"] == pytest.approx(-0.15)
        assert out["finalDecision"] == {
            "finalStatus": "SUSPECTED",
            "finalConfidence": pytest.approx(0.75),
            "previousStatus": "CONFIRMED",
            "wasDowngraded": True,
        }


class TestResolution:

    SIGNALS = {"correlatedNetworkActivity": True, "interactionBlocked": True}

    def test_sequential_last_rule_wins(self):
        report = confirmed(GuardrailsEngine(), signals=self.SIGNALS)
        assert [r.rule_id for r in report.applied_rules] == ["GUARD-001", "GUARD-005"]
        assert report.final_status is FindingStatus.INFORMATIONAL
        assert report.final_confidence == pytest.approx(0.65)

    def test_precedence_prefers_stronger_action(self):
        engine = GuardrailsEngine(GuardrailsPolicy(resolution=GuardrailResolution.PRECEDENCE))
        report = confirmed(engine, signals=self.SIGNALS)
        assert report.final_status is FindingStatus.SUSPECTED
        assert report.policy_report["resolution"] == "precedence"

    def test_block_outranks_info(self):
        rules = [
            GuardrailRule(id="A-1", evaluation_type="contradict_evidence", action="BLOCK"),
            GuardrailRule(id="B-2", evaluation_type="analytics_only", action="INFO"),
        ]
        sequential = GuardrailsEngine(GuardrailsPolicy(rules=list(rules)))
        precedence = GuardrailsEngine(GuardrailsPolicy(rules=list(rules), resolution=GuardrailResolution.PRECEDENCE))

        kwargs = dict(signals=ANALYTICS, evidence_package=INCOMPLETE)
        assert confirmed(sequential, **kwargs).final_status is FindingStatus.INFORMATIONAL
        assert confirmed(precedence, **kwargs).final_status is FindingStatus.SUSPECTED

    def test_rules_run_in_id_order(self):
        rules = [
            GuardrailRule(id="Z-9", evaluation_type="interaction_blocked", action="INFO"),
            GuardrailRule(id="A-1", evaluation_type="network_success_no_ui", action="DOWNGRADE"),
        ]
        report = confirmed(GuardrailsEngine(GuardrailsPolicy(rules=rules)), signals=TestResolution.SIGNALS)
        assert [r.rule_id for r in report.applied_rules] == ["A-1", "Z-9"]
        assert report.final_status is FindingStatus.INFORMATIONAL


class TestRuleSelection:

    def test_applies_to_filters_by_type(self):
        rule = GuardrailRule(id="N-1", evaluation_type="analytics_only", action="INFO", applies_to=("navigation",))
        report = confirmed(GuardrailsEngine(GuardrailsPolicy(rules=[rule])), signals=ANALYTICS)
        assert report.applied_rules == []
        assert report.policy_report["rulesEvaluated"] == 1

    def test_code_falls_back_to_rule_id(self):
        rule = GuardrailRule(id="N-1", evaluation_type="analytics_only", action="INFO")
        report = confirmed(GuardrailsEngine(GuardrailsPolicy(rules=[rule])), signals=ANALYTICS)
        assert report.applied_rules[0].code == "N-1"
        assert report.applied_rules[0].message == "Only analytics or beacon traffic was observed"
        assert report.confidence_adjustments == []

    def test_unknown_evaluation_type_is_ignored(self, caplog):
        rule = GuardrailRule(id="X-1", evaluation_type="does_not_exist", action="BLOCK")
        with caplog.at_level(logging.WARNING, logger="truthgate.guardrails.rules"):
            report = confirmed(GuardrailsEngine(GuardrailsPolicy(rules=[rule])))
        assert report.applied_rules == []
        assert "does_not_exist" in caplog.text


def test_evaluate_rule_directly():
    ctx = RuleContext(finding_type=DEAD, status=FindingStatus.CONFIRMED, signals={"elementDisabled": True})
    outcome = evaluate_rule("interaction_blocked", ctx)
    assert outcome.applies
    assert outcome.recommended_status is FindingStatus.INFORMATIONAL
    assert not evaluate_rule("validation_present", ctx).applies


def test_apply_to_candidate():
    candidate = CandidateFinding(
        type=FindingType.DEAD_INTERACTION,
        status=FindingStatus.CONFIRMED,
        severity=Severity.MEDIUM,
        confidence=0.9,
        promise={"kind": "click", "value": "#save"},
        observed={},
        evidence={},
        observation_id="exp-1",
        signals={"correlatedNetworkActivity": True},
    )
    report = GuardrailsEngine().apply_to_candidate(candidate)
    assert report.final_status is FindingStatus.SUSPECTED
    assert candidate.status is FindingStatus.CONFIRMED
    assert report.final_confidence == pytest.approx(0.75)

    capped = GuardrailsEngine().apply_to_candidate(candidate, confidence=0.6)
    assert capped.initial_confidence == pytest.approx(0.6)
    assert capped.final_confidence == pytest.approx(0.45)
