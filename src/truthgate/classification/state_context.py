"""Legitimate explanations for an interaction with no visible effect."""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from truthgate.domain.models import Observation

NO_OP_VERBS = ("clear", "delete")

@dataclass(frozen=True)
class StateContext:
    is_empty: bool = False
    is_disabled: bool = False
    is_no_op: bool = False
    reasons: Tuple[str, ...] = ()

    @property
    def explains_no_effect(self) -> bool:
        return self.is_empty or self.is_disabled or self.is_no_op

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isEmpty": self.is_empty,
            "isDisabled": self.is_disabled,
            "isNoOp": self.is_no_op,
            "reasons": list(self.reasons),
        }


class StateContextAnalyser:
    """Explains a non-effect as an empty state, a disabled control or a no-op."""

    @staticmethod
    def interaction_label(observation: Observation) -> str:
        label = observation.evidence.get("interactionLabel")
        if not label:
            snapshot = observation.snapshot
            label = snapshot.label if snapshot is not None else None
        return str(label or "").lower()

    @staticmethod
    def analyse(observation: Observation) -> StateContext:
        signals = observation.signals or {}
        ui = signals.get("uiSignals") or {}
        reasons = []

        is_empty = ui.get("emptyState") is True or ui.get("noItems") is True
        if is_empty:
            reasons.append("UI indicates empty state or no items to operate on")

        before_state = observation.evidence.get("beforeState") or {}
        snapshot = observation.snapshot
        is_disabled = bool(before_state.get("disabledElements"))
        if is_disabled:
            reasons.append("Interactive elements were disabled before the action")
        elif snapshot is not None and (snapshot.disabled or snapshot.aria_disabled):
            is_disabled = True
            reasons.append("Target control was disabled before the action")

        label = StateContextAnalyser.interaction_label(observation)
        is_no_op = is_empty and any(v in label for v in NO_OP_VERBS)
        if is_no_op:
            reasons.append("Clear action on empty list is valid no-op behavior")

        return StateContext(
            is_empty=is_empty,
            is_disabled=is_disabled,
            is_no_op=is_no_op,
            reasons=tuple(reasons),
        )
