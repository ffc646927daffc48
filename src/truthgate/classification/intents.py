"""Closed intent families and the observable contract each one promises."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple, Union, List

from .signals import EffectSignals

MAX_REASONS = 8
MAX_REASON_LENGTH = 80

def cap_reasons(
        reasons: Iterable[str],
        max_count: int = MAX_REASONS,
        max_length: int = MAX_REASON_LENGTH) -> Tuple[str, ...]:
    """Bound the number and length of reason strings."""
    capped = []
    for r in reasons:
        if not r:
            continue
        capped.append(str(r)[:max_length])
        if len(capped) >= max_count:
            break
    return tuple(capped)


def _route_transitioned(route_data: Optional[Mapping]) -> bool:
    if not route_data:
        return False
    before, after = route_data.get("before"), route_data.get("after")
    if before is not None and after is not None and before != after:
        return True
    return False


class InteractionIntent(Enum):
    NAVIGATION = "NAVIGATION_INTENT"
    SUBMISSION = "SUBMISSION_INTENT"
    ASYNC_FEEDBACK = "ASYNC_FEEDBACK_INTENT"
    TOGGLE = "TOGGLE_INTENT"
    UNKNOWN = "UNKNOWN_INTENT"

    @property
    def is_resolved(self) -> bool:
        return self is not InteractionIntent.UNKNOWN

    def contract_satisfied(self, effects: EffectSignals) -> bool:
        """Whether the signals prove the interaction did what it promised."""
        if self is InteractionIntent.NAVIGATION:
            return effects.navigation_changed
        if self is InteractionIntent.SUBMISSION:
            return effects.navigation_changed or effects.network_attempt or effects.feedback_seen
        if self is InteractionIntent.ASYNC_FEEDBACK:
            return effects.feedback_seen or effects.meaningful_dom_change or effects.network_attempt
        if self is InteractionIntent.TOGGLE:
            return effects.toggle_changed or effects.meaningful_dom_change
        return False


class NavigationIntent(Enum):
    ROUTE = "ROUTE_NAVIGATION"
    DOCUMENT = "DOCUMENT_NAVIGATION"
    HASH = "HASH_NAVIGATION"
    UNKNOWN = "UNKNOWN_NAVIGATION"

    @property
    def is_resolved(self) -> bool:
        return self is not NavigationIntent.UNKNOWN

    def missing_observables(self, signals: Mapping, route_data: Optional[Mapping]) -> List[str]:
        """Observables this contract needs that were never captured."""
        signals = signals or {}
        route_data = route_data or {}
        has_nav_flag = any(isinstance(signals.get(k), bool) for k in ("navigationChanged", "routeChanged"))
        has_route_pair = route_data.get("before") is not None and route_data.get("after") is not None
        if has_nav_flag or has_route_pair:
            return []
        return ["navigation_signal", "route_data"]

    def contract_satisfied(
            self,
            effects: EffectSignals,
            signals: Optional[Mapping] = None,
            route_data: Optional[Mapping] = None) -> bool:
        if not self.is_resolved:
            return False
        if effects.navigation_changed or _route_transitioned(route_data):
            return True
        if self is NavigationIntent.HASH:
            return (signals or {}).get("hashChanged") is True
        return False


class SubmissionIntent(Enum):
    FORM = "FORM_SUBMISSION"
    ASYNC = "ASYNC_SUBMISSION"
    UNKNOWN = "UNKNOWN_SUBMISSION"

    @property
    def is_resolved(self) -> bool:
        return self is not SubmissionIntent.UNKNOWN

    def contract_satisfied(self, effects: EffectSignals, signals: Optional[Mapping] = None) -> bool:
        if not self.is_resolved:
            return False
        after_submit = (signals or {}).get("networkAttemptAfterSubmit") is True
        return (
            effects.navigation_changed
            or effects.feedback_seen
            or effects.meaningful_dom_change
            or effects.network_attempt
            or after_submit
        )


AnyIntent = Union[InteractionIntent, NavigationIntent, SubmissionIntent]

@dataclass(frozen=True)
class ClassifiedIntent:
    """An intent variant together with the reasons that selected it."""
    intent: AnyIntent
    reasons: Tuple[str, ...] = ()

    @classmethod
    def of(cls, intent: AnyIntent, *reasons: str) -> "ClassifiedIntent":
        return cls(intent=intent, reasons=cap_reasons(reasons))

    @property
    def is_resolved(self) -> bool:
        return self.intent.is_resolved

    @property
    def name(self) -> str:
        return self.intent.value
