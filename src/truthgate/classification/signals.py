"""Reading effect signals off an observation."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

TOGGLE_DELTA_KEYS = (
    "ariaExpandedChanged",
    "ariaPressedChanged",
    "ariaCheckedChanged",
    "controlCheckedChanged",
)

def _flag(signals: Mapping, *keys: str) -> bool:
    return any(signals.get(k) is True for k in keys)

def toggle_state_changed(delta: Optional[Mapping]) -> bool:
    """True when any toggle-state delta flag is set."""
    if not delta:
        return False
    return any(delta.get(k) is True for k in TOGGLE_DELTA_KEYS)

@dataclass(frozen=True)
class EffectSignals:
    """Normalised view of the effect signals an observation carries."""
    navigation_changed: bool = False
    feedback_seen: bool = False
    meaningful_dom_change: bool = False
    network_attempt: bool = False
    toggle_changed: bool = False
    outcome_acknowledged: bool = False

    @classmethod
    def from_signals(cls, signals: Optional[Mapping], delta: Optional[Mapping] = None) -> "EffectSignals":
        signals = signals or {}
        return cls(
            navigation_changed=_flag(signals, "navigationChanged", "routeChanged"),
            feedback_seen=_flag(signals, "feedbackSeen", "ariaLiveUpdated", "ariaRoleAlertsDetected"),
            meaningful_dom_change=_flag(signals, "meaningfulDomChange", "meaningfulUIChange"),
            network_attempt=_flag(signals, "correlatedNetworkActivity", "networkActivity"),
            toggle_changed=toggle_state_changed(delta),
            outcome_acknowledged=_flag(signals, "outcomeAcknowledged"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "navigation_changed": self.navigation_changed,
            "feedback_seen": self.feedback_seen,
            "meaningful_dom_change": self.meaningful_dom_change,
            "network_attempt": self.network_attempt,
            "toggle_state_changed": self.toggle_changed,
        }
