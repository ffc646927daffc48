import pytest

from truthgate.classification.classifier import IntentClassifier
from truthgate.classification.intents import (
    InteractionIntent,
    NavigationIntent,
    SubmissionIntent,
    cap_reasons,
)
from truthgate.classification.signals import EffectSignals
from truthgate.domain.models import ElementSnapshot, Expectation


def snapshot(make_button, **overrides):
    return ElementSnapshot.from_dict(make_button(**overrides))


class TestInteractionIntent:

    def test_no_snapshot_is_unknown(self):
        result = IntentClassifier.classify_interaction(None)
        assert result.intent is InteractionIntent.UNKNOWN
        assert not result.is_resolved

    def test_submit_control(self, make_button):
        result = IntentClassifier.classify_interaction(
            snapshot(make_button, form={"associated": True, "isSubmitControl": True}))
        assert result.intent is InteractionIntent.SUBMISSION
        assert result.reasons == ("form_submit_control",)

    def test_aria_state_means_toggle(self, make_button):
        result = IntentClassifier.classify_interaction(snapshot(make_button, aria={"expanded": "false"}))
        assert result.intent is InteractionIntent.TOGGLE
        assert "aria_expanded_state" in result.reasons

    def test_toggle_role(self, make_button):
        result = IntentClassifier.classify_interaction(snapshot(make_button, role="switch", hasOnClick=False))
        assert result.intent is InteractionIntent.TOGGLE

    def test_real_link_means_navigation(self, make_button):
        result = IntentClassifier.classify_interaction(
            snapshot(make_button, tagName="A", href="/about", hasOnClick=False))
        assert result.intent is InteractionIntent.NAVIGATION

    def test_link_nested_in_button_is_not_navigation(self, make_button):
        result = IntentClassifier.classify_interaction(
            snapshot(make_button, tagName="A", href="/about", hasOnClick=False, nestedInButton=True))
        assert result.intent is InteractionIntent.UNKNOWN

    def test_click_handler_on_button_means_async_feedback(self, make_button):
        result = IntentClassifier.classify_interaction(snapshot(make_button))
        assert result.intent is InteractionIntent.ASYNC_FEEDBACK

    def test_hash_link_with_handler_is_button_like(self, make_button):
        result = IntentClassifier.classify_interaction(
            snapshot(make_button, tagName="A", href="#", hasOnClick=True))
        assert result.intent is InteractionIntent.ASYNC_FEEDBACK

    def test_conflicting_nesting_is_unknown(self, make_button):
        result = IntentClassifier.classify_interaction(
            snapshot(make_button, nestedInButton=True, nestedInLink=True))
        assert result.intent is InteractionIntent.UNKNOWN
        assert result.reasons == ("conflicting_nesting",)

    def test_plain_div_is_unknown(self, make_button):
        result = IntentClassifier.classify_interaction(snapshot(make_button, tagName="DIV", hasOnClick=True))
        assert result.intent is InteractionIntent.UNKNOWN


class TestInteractionContracts:

    def test_toggle_needs_state_change_or_dom_change(self):
        assert InteractionIntent.TOGGLE.contract_satisfied(
            EffectSignals.from_signals({}, {"ariaExpandedChanged": True}))
        assert InteractionIntent.TOGGLE.contract_satisfied(
            EffectSignals.from_signals({"meaningfulDomChange": True}))
        assert not InteractionIntent.TOGGLE.contract_satisfied(
            EffectSignals.from_signals({"correlatedNetworkActivity": True}))

    def test_navigation_needs_route_change(self):
        assert not InteractionIntent.NAVIGATION.contract_satisfied(
            EffectSignals.from_signals({"meaningfulDomChange": True}))
        assert InteractionIntent.NAVIGATION.contract_satisfied(
            EffectSignals.from_signals({"routeChanged": True}))

    def test_unknown_is_never_satisfied(self):
        effects = EffectSignals.from_signals({"navigationChanged": True, "meaningfulDomChange": True})
        assert not InteractionIntent.UNKNOWN.contract_satisfied(effects)


class TestNavigationIntent:

    def test_runtime_record_wins(self, make_button):
        result = IntentClassifier.classify_navigation(
            snapshot(make_button, tagName="A", href="https://example.com"),
            {"href": "/dashboard"},
        )
        assert result.intent is NavigationIntent.ROUTE

    def test_snapshot_href(self, make_button):
        result = IntentClassifier.classify_navigation(snapshot(make_button, tagName="A", href="#faq"))
        assert result.intent is NavigationIntent.HASH

    def test_expectation_value(self):
        expectation = Expectation(id="e", kind="navigation", value="https://example.com/docs")
        result = IntentClassifier.classify_navigation(None, None, expectation)
        assert result.intent is NavigationIntent.DOCUMENT

    def test_js_href_is_unknown(self):
        result = IntentClassifier.classify_navigation(None, {"href": "javascript:void(0)"})
        assert result.intent is NavigationIntent.UNKNOWN

    def test_missing_observables(self):
        assert NavigationIntent.ROUTE.missing_observables({}, {}) == ["navigation_signal", "route_data"]
        assert NavigationIntent.ROUTE.missing_observables({"routeChanged": False}, {}) == []
        assert NavigationIntent.ROUTE.missing_observables({}, {"before": "/a", "after": "/a"}) == []

    def test_route_transition_satisfies_contract(self):
        effects = EffectSignals.from_signals({"navigationChanged": False})
        assert NavigationIntent.ROUTE.contract_satisfied(effects, {}, {"before": "/a", "after": "/b"})
        assert not NavigationIntent.ROUTE.contract_satisfied(effects, {}, {"before": "/a", "after": "/a"})

    def test_hash_navigation_accepts_hash_change(self):
        effects = EffectSignals.from_signals({})
        assert NavigationIntent.HASH.contract_satisfied(effects, {"hashChanged": True}, {})
        assert not NavigationIntent.ROUTE.contract_satisfied(effects, {"hashChanged": True}, {})


class TestSubmissionIntent:

    def test_form_with_action(self, make_button):
        form = {"associated": True, "isSubmitControl": True, "hasAction": True}
        result = IntentClassifier.classify_submission(snapshot(make_button, form=form))
        assert result.intent is SubmissionIntent.FORM

    def test_form_without_action_is_async(self, make_button):
        form = {"associated": True, "isSubmitControl": True}
        result = IntentClassifier.classify_submission(snapshot(make_button, form=form))
        assert result.intent is SubmissionIntent.ASYNC

    def test_submit_expectation(self):
        expectation = Expectation(id="e", kind="submit", value="/api/signup")
        result = IntentClassifier.classify_submission(None, expectation)
        assert result.intent is SubmissionIntent.ASYNC

    def test_nothing_known(self):
        assert IntentClassifier.classify_submission(None).intent is SubmissionIntent.UNKNOWN

    def test_network_attempt_after_submit_satisfies_contract(self):
        effects = EffectSignals.from_signals({})
        assert SubmissionIntent.ASYNC.contract_satisfied(effects, {"networkAttemptAfterSubmit": True})
        assert not SubmissionIntent.ASYNC.contract_satisfied(effects, {"networkAttemptAfterSubmit": False})


def test_cap_reasons_limits_count_and_length():
    reasons = cap_reasons(["x" * 200] + [f"r{i}" for i in range(20)])
    assert len(reasons) == 8
    assert len(reasons[0]) == 80


def test_cap_reasons_skips_empty():
    assert cap_reasons(["", None, "ok"]) == ("ok",)


@pytest.mark.parametrize("signals, expected", [
    ({"navigationChanged": True}, "navigation_changed"),
    ({"ariaLiveUpdated": True}, "feedback_seen"),
    ({"meaningfulUIChange": True}, "meaningful_dom_change"),
    ({"networkActivity": True}, "network_attempt"),
])
def test_effect_signals_aliases(signals, expected):
    assert EffectSignals.from_signals(signals).to_dict()[expected] is True
