"""Rules for assigning an intent to an exercised element."""
from typing import Optional, Mapping

from truthgate.domain.models import ElementSnapshot, Expectation, normalize_href_kind
from .intents import (
    ClassifiedIntent,
    InteractionIntent,
    NavigationIntent,
    SubmissionIntent,
)

BUTTON_TAGS = {"BUTTON", "SUMMARY"}
TOGGLE_ROLES = {"switch", "checkbox", "tab", "menuitemcheckbox", "menuitemradio", "radio"}
NOOP_HREF_KINDS = {"hash_only", "noop_hash", "noop_js"}

_HREF_TO_NAVIGATION = {
    "relative": NavigationIntent.ROUTE,
    "absolute": NavigationIntent.DOCUMENT,
    "hash_only": NavigationIntent.HASH,
}

class IntentClassifier:
    """
    Classifier for the semantic purpose of an interaction.
    Anything that does not clearly match a known pattern is UNKNOWN.
    """
    @staticmethod
    def classify_interaction(snapshot: Optional[ElementSnapshot]) -> ClassifiedIntent:
        if snapshot is None:
            return ClassifiedIntent.of(InteractionIntent.UNKNOWN, "no_element_snapshot")

        if snapshot.nested_in_button and snapshot.nested_in_link:
            return ClassifiedIntent.of(InteractionIntent.UNKNOWN, "conflicting_nesting")

        tag = snapshot.tag_name.upper()
        role = (snapshot.role or "").lower()
        form = snapshot.form or {}

        # 1) Submit controls
        if form.get("associated") is True and form.get("isSubmitControl") is True:
            return ClassifiedIntent.of(InteractionIntent.SUBMISSION, "form_submit_control")
        if snapshot.event_type == "submit":
            return ClassifiedIntent.of(InteractionIntent.SUBMISSION, "submit_event")

        # 2) Toggle state exposed through ARIA or a native control
        aria = snapshot.aria or {}
        toggle_reasons = [f"aria_{k}_state" for k in ("expanded", "pressed", "checked") if aria.get(k) is not None]
        if isinstance((snapshot.control or {}).get("checked"), bool):
            toggle_reasons.append("control_checked_state")
        if role in TOGGLE_ROLES:
            toggle_reasons.append(f"toggle_role_{role}")
        if toggle_reasons:
            return ClassifiedIntent.of(InteractionIntent.TOGGLE, *toggle_reasons)

        # 3) Real link targets
        if snapshot.href_present and snapshot.href_kind in ("relative", "absolute") \
                and not snapshot.nested_in_button:
            return ClassifiedIntent.of(InteractionIntent.NAVIGATION, f"href_{snapshot.href_kind}")

        # 4) Handler-driven actions that should acknowledge the user
        button_like = tag in BUTTON_TAGS or role == "button" or snapshot.href_kind in NOOP_HREF_KINDS
        if snapshot.has_on_click and button_like:
            return ClassifiedIntent.of(InteractionIntent.ASYNC_FEEDBACK, "click_handler_on_button")
        if snapshot.aria_live:
            return ClassifiedIntent.of(InteractionIntent.ASYNC_FEEDBACK, f"aria_live_{snapshot.aria_live}")

        return ClassifiedIntent.of(InteractionIntent.UNKNOWN, "no_recognised_pattern")

    @staticmethod
    def classify_navigation(
        snapshot: Optional[ElementSnapshot],
        runtime_nav: Optional[Mapping] = None,
        expectation: Optional[Expectation] = None,
    ) -> ClassifiedIntent:
        if runtime_nav and runtime_nav.get("href"):
            kind = normalize_href_kind(runtime_nav.get("href"))["kind"]
            intent = _HREF_TO_NAVIGATION.get(kind)
            if intent is not None:
                return ClassifiedIntent.of(intent, f"runtime_nav_href_{kind}")

        if snapshot is not None and snapshot.href_present and not snapshot.nested_in_button:
            intent = _HREF_TO_NAVIGATION.get(snapshot.href_kind)
            if intent is not None:
                return ClassifiedIntent.of(intent, f"element_href_{snapshot.href_kind}")

        if expectation is not None and expectation.kind.startswith("navigation") \
                and isinstance(expectation.value, str):
            kind = normalize_href_kind(expectation.value)["kind"]
            intent = _HREF_TO_NAVIGATION.get(kind)
            if intent is not None:
                return ClassifiedIntent.of(intent, f"expectation_target_{kind}")

        return ClassifiedIntent.of(NavigationIntent.UNKNOWN, "no_navigation_target")

    @staticmethod
    def classify_submission(
        snapshot: Optional[ElementSnapshot],
        expectation: Optional[Expectation] = None,
    ) -> ClassifiedIntent:
        if snapshot is not None:
            form = snapshot.form or {}
            if form.get("associated") is True and form.get("isSubmitControl") is True:
                if form.get("hasAction") is True:
                    return ClassifiedIntent.of(SubmissionIntent.FORM, "form_submit_control", "form_has_action")
                return ClassifiedIntent.of(SubmissionIntent.ASYNC, "form_submit_control", "form_without_action")
            if snapshot.event_type == "submit" or snapshot.tag_name.upper() == "FORM":
                if form.get("hasAction") is True:
                    return ClassifiedIntent.of(SubmissionIntent.FORM, "submit_event", "form_has_action")
                return ClassifiedIntent.of(SubmissionIntent.ASYNC, "submit_event")

        if expectation is not None and expectation.kind in ("submit", "form_submission"):
            return ClassifiedIntent.of(SubmissionIntent.ASYNC, f"expectation_kind_{expectation.kind}")

        return ClassifiedIntent.of(SubmissionIntent.UNKNOWN, "no_submission_pattern")
