"""Silent-failure detectors."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from truthgate.classification.classifier import IntentClassifier
from truthgate.classification.intents import ClassifiedIntent
from truthgate.classification.signals import EffectSignals
from truthgate.classification.state_context import StateContext, StateContextAnalyser
from truthgate.config.settings import DetectionSettings
from truthgate.domain.models import (
    CandidateFinding,
    Expectation,
    FindingStatus,
    FindingType,
    Observation,
    Severity,
    SilenceSignal,
    SourceLocation,
)
from . import silence
from .eligibility import EligibilityGate, EligibilityRequest
from .evidence import (
    has_state_comparison_evidence,
    heuristic_confidence,
    missing_state_evidence,
    runtime_navigation_confidence,
    state_evidence_paths,
)

logger = logging.getLogger(__name__)

SUBMIT_KINDS = ("submit", "form_submission")

@dataclass(frozen=True)
class DetectionOutcome:
    """What a detector made of one observation."""
    candidate: Optional[CandidateFinding] = None
    silence: Optional[SilenceSignal] = None

    @property
    def has_candidate(self) -> bool:
        return self.candidate is not None


class Detector(ABC):
    """Runs over one (observation, matched expectation) pair."""

    finding_type: FindingType
    name: str = "detector"

    def __init__(self, settings: Optional[DetectionSettings] = None, gate: Optional[EligibilityGate] = None):
        self.settings = settings or DetectionSettings()
        self.gate = gate or EligibilityGate()

    @abstractmethod
    def applies_to(self, observation: Observation, expectation: Expectation) -> bool:
        ...

    @abstractmethod
    def detect(self, observation: Observation, expectation: Expectation) -> DetectionOutcome:
        ...

    # ---------- shared helpers ----------
    def _silence(self, kind, code, observation, expectation, intent=None, details=None) -> DetectionOutcome:
        signal = silence.build_silence_signal(kind, code, observation, expectation, intent, details)
        logger.debug("[%s] %s: silence %s/%s", self.name, observation.id, kind, code)
        return DetectionOutcome(silence=signal)

    def _capped(self, reasons) -> List[str]:
        return [
            str(r)[:self.settings.max_reason_length]
            for r in list(reasons)[:self.settings.max_reasons]
        ]

    @staticmethod
    def _promise(expectation: Expectation) -> Dict[str, Any]:
        return {
            "kind": expectation.kind,
            "value": expectation.value,
            "selector": expectation.selector_hint,
        }

    def _base_evidence(self, observation: Observation, intent: ClassifiedIntent, effects: EffectSignals) -> Dict[str, Any]:
        evidence = {
            "action_attempted": observation.attempted,
            "action_executed": observation.action_success,
            "intent": intent.name,
            "intent_reasons": self._capped(intent.reasons),
            **effects.to_dict(),
            **state_evidence_paths(observation.evidence_files),
            "evidence_files": list(observation.evidence_files),
        }
        if observation.route_data:
            evidence["route_data"] = dict(observation.route_data)
        network = (observation.signals or {}).get("network")
        if network:
            evidence["network"] = dict(network)
        return evidence

    def _enrichment(self, expectation: Expectation, context: Optional[StateContext], promise_source: str) -> Dict[str, Any]:
        enrichment = {
            "selector": expectation.selector_hint,
            "promise_source": promise_source,
            "file": expectation.source.file,
            "line": expectation.source.line,
        }
        if context is not None and context.explains_no_effect:
            enrichment["state_context"] = {
                **context.to_dict(),
                "reasons": self._capped(context.reasons),
            }
        return enrichment

    def _candidate(self, observation, expectation, **fields) -> CandidateFinding:
        return CandidateFinding(
            type=self.finding_type,
            observation_id=observation.id,
            expectation_id=expectation.id,
            source=expectation.source,
            signals=dict(observation.signals or {}),
            promise=self._promise(expectation),
            **fields,
        )

    def _request(self, observation, intent, **extra) -> EligibilityRequest:
        return EligibilityRequest(
            type=self.finding_type,
            attempted=observation.attempted,
            action_success=observation.action_success,
            intent=intent,
            signals=observation.signals or {},
            evidence_files=observation.evidence_files,
            route_data=observation.route_data,
            **extra,
        )


class DeadInteractionDetector(Detector):
    """A click on an actionable element that produced no observable effect."""

    finding_type = FindingType.DEAD_INTERACTION
    name = "dead-interaction"

    def applies_to(self, observation: Observation, expectation: Expectation) -> bool:
        return observation.type == "interaction" and observation.action == "click"

    def detect(self, observation: Observation, expectation: Expectation) -> DetectionOutcome:
        if not (observation.attempted and observation.action_success):
            return DetectionOutcome()

        snapshot = observation.snapshot
        if snapshot is None or not snapshot.is_actionable:
            return DetectionOutcome()

        if not has_state_comparison_evidence(observation.evidence_files):
            return self._silence(
                silence.INTERACTION_AMBIGUOUS, "interaction_observables_unavailable",
                observation, expectation,
                details={"missing": missing_state_evidence(observation.evidence_files)},
            )

        intent = IntentClassifier.classify_interaction(snapshot)
        if not intent.is_resolved:
            return self._silence(silence.INTENT_BLOCKED, "unknown_click_intent", observation, expectation, intent)

        effects = EffectSignals.from_signals(observation.signals, snapshot.delta)
        if intent.intent.contract_satisfied(effects):
            return DetectionOutcome()

        context = StateContextAnalyser.analyse(observation)
        if context.explains_no_effect:
            status = FindingStatus.INFORMATIONAL
            confidence = heuristic_confidence(observation, context)
        else:
            status = FindingStatus.CONFIRMED
            confidence = self.settings.dead_interaction_confidence

        label = snapshot.label or snapshot.tag_name.lower()
        candidate = self._candidate(
            observation, expectation,
            status=status,
            severity=Severity.MEDIUM,
            confidence=confidence,
            observed={
                "description": f"Clicking '{label}' produced no observable effect",
                "intent": intent.name,
            },
            evidence=self._base_evidence(observation, intent, effects),
            enrichment=self._enrichment(expectation, context, "source-extracted"),
            impact={
                "summary": "User action is ignored without feedback",
                "user_visible": True,
            },
        )
        if candidate.status is FindingStatus.CONFIRMED:
            self.gate.enforce(candidate, self._request(
                observation, intent, element_snapshot_actionable=snapshot.is_actionable,
            ))
        return DetectionOutcome(candidate=candidate)


class BrokenNavigationDetector(Detector):
    """A navigation promise whose route never changed."""

    finding_type = FindingType.BROKEN_NAVIGATION
    name = "broken-navigation"

    def applies_to(self, observation: Observation, expectation: Expectation) -> bool:
        return observation.type == "navigation"

    def detect(self, observation: Observation, expectation: Expectation) -> DetectionOutcome:
        if not (observation.attempted and observation.action_success):
            return DetectionOutcome()
        if observation.reason and "not-found" in observation.reason.lower():
            return DetectionOutcome()

        if not has_state_comparison_evidence(observation.evidence_files):
            return self._silence(
                silence.NAVIGATION_AMBIGUOUS, "navigation_observables_unavailable",
                observation, expectation,
                details={"missing": missing_state_evidence(observation.evidence_files)},
            )

        snapshot = observation.snapshot
        runtime_nav = observation.runtime_navigation
        intent = IntentClassifier.classify_navigation(snapshot, runtime_nav, expectation)
        if not intent.is_resolved:
            had_context = bool(runtime_nav and runtime_nav.get("href")) or \
                (snapshot is not None and snapshot.is_actionable)
            if had_context:
                return self._silence(
                    silence.NAVIGATION_AMBIGUOUS, "navigation_intent_unresolved",
                    observation, expectation, intent,
                )
            return DetectionOutcome()

        missing = intent.intent.missing_observables(observation.signals, observation.route_data)
        if missing:
            return self._silence(
                silence.NAVIGATION_AMBIGUOUS, "navigation_observables_unavailable",
                observation, expectation, intent, details={"missing": missing},
            )

        delta = snapshot.delta if snapshot is not None else None
        effects = EffectSignals.from_signals(observation.signals, delta)
        if intent.intent.contract_satisfied(effects, observation.signals, observation.route_data):
            return DetectionOutcome()

        is_runtime = expectation.is_runtime_navigation or runtime_nav is not None
        context = None
        if is_runtime:
            if effects.outcome_acknowledged or effects.meaningful_dom_change or effects.feedback_seen:
                return DetectionOutcome()
            confidence = runtime_navigation_confidence(observation)
            confirmed = confidence >= self.settings.runtime_navigation_confirm_threshold \
                and bool(observation.evidence_files)
            status = FindingStatus.CONFIRMED if confirmed else FindingStatus.SUSPECTED
            promise_source = "runtime-discovered"
        else:
            context = StateContextAnalyser.analyse(observation)
            confidence = heuristic_confidence(observation, context)
            if context.explains_no_effect:
                status = FindingStatus.INFORMATIONAL
            elif confidence >= self.settings.confirm_threshold:
                status = FindingStatus.CONFIRMED
            else:
                status = FindingStatus.SUSPECTED
            promise_source = "source-extracted"

        target = expectation.value or (runtime_nav or {}).get("href")
        candidate = self._candidate(
            observation, expectation,
            status=status,
            severity=Severity.HIGH,
            confidence=confidence,
            observed={
                "description": f"Navigation to '{target}' did not change the route",
                "intent": intent.name,
            },
            evidence=self._base_evidence(observation, intent, effects),
            enrichment=self._enrichment(expectation, context, promise_source),
            impact={
                "summary": "User stays on the current page despite a navigation promise",
                "user_visible": True,
            },
        )
        if candidate.status is FindingStatus.CONFIRMED:
            self.gate.enforce(candidate, self._request(observation, intent, runtime_navigation=is_runtime))
        return DetectionOutcome(candidate=candidate)


class SilentSubmissionDetector(Detector):
    """A form submission with no navigation, feedback, DOM change or network attempt."""

    finding_type = FindingType.SILENT_SUBMISSION
    name = "silent-submission"

    def applies_to(self, observation: Observation, expectation: Expectation) -> bool:
        if observation.action == "submit":
            return True
        return observation.type == "interaction" and expectation.kind in SUBMIT_KINDS

    def detect(self, observation: Observation, expectation: Expectation) -> DetectionOutcome:
        if not (observation.attempted and observation.action_success):
            return DetectionOutcome()

        if not has_state_comparison_evidence(observation.evidence_files):
            return self._silence(
                silence.SUBMISSION_AMBIGUOUS, "submission_observables_unavailable",
                observation, expectation,
                details={"missing": ["state_comparison_evidence"]},
            )

        snapshot = observation.snapshot
        intent = IntentClassifier.classify_submission(snapshot, expectation)
        if not intent.is_resolved:
            return self._silence(
                silence.SUBMISSION_AMBIGUOUS, "unknown_submission_intent", observation, expectation, intent,
            )

        signals = observation.signals or {}
        triggered = signals.get("submissionTriggered")
        if triggered is False:
            return self._silence(
                silence.SUBMISSION_AMBIGUOUS, "submission_not_triggered", observation, expectation, intent,
            )
        if triggered is not True:
            return self._silence(
                silence.SUBMISSION_AMBIGUOUS, "submission_observables_unavailable",
                observation, expectation, intent, details={"missing": ["submissionTriggered"]},
            )
        if not isinstance(signals.get("networkAttemptAfterSubmit"), bool):
            return self._silence(
                silence.SUBMISSION_AMBIGUOUS, "submission_observables_unavailable",
                observation, expectation, intent, details={"missing": ["networkAttemptAfterSubmit"]},
            )

        delta = snapshot.delta if snapshot is not None else None
        effects = EffectSignals.from_signals(signals, delta)
        if intent.intent.contract_satisfied(effects, signals):
            return DetectionOutcome()

        context = StateContextAnalyser.analyse(observation)
        confidence = heuristic_confidence(observation, context)
        if context.explains_no_effect:
            status = FindingStatus.INFORMATIONAL
        elif confidence >= self.settings.confirm_threshold:
            status = FindingStatus.CONFIRMED
        else:
            status = FindingStatus.SUSPECTED

        evidence = self._base_evidence(observation, intent, effects)
        evidence["submission_triggered"] = True
        evidence["network_attempt_after_submit"] = signals.get("networkAttemptAfterSubmit")
        candidate = self._candidate(
            observation, expectation,
            status=status,
            severity=Severity.HIGH,
            confidence=confidence,
            observed={
                "description": "Form was submitted but nothing observable followed",
                "intent": intent.name,
            },
            evidence=evidence,
            enrichment=self._enrichment(expectation, context, "source-extracted"),
            impact={
                "summary": "User data may be lost without any acknowledgement",
                "user_visible": True,
            },
        )
        if candidate.status is FindingStatus.CONFIRMED:
            self.gate.enforce(candidate, self._request(observation, intent))
        return DetectionOutcome(candidate=candidate)


class InteractionIntentFallback:
    """
    Describes intentful interactions that were never acknowledged, for
    observations whether or not any expectation matched them.
    """

    name = "interaction-fallback"

    def __init__(self, settings: Optional[DetectionSettings] = None):
        self.settings = settings or DetectionSettings()

    def detect_all(self, observations: Sequence[Observation]) -> List[CandidateFinding]:
        candidates = []
        for observation in observations:
            candidate = self.detect(observation)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def detect(self, observation: Observation) -> Optional[CandidateFinding]:
        meta = observation.evidence.get("interactionIntent") or {}
        classification = meta.get("classification") or {}
        if classification.get("intentful") is not True:
            return None
        acknowledgment = observation.evidence.get("interactionAcknowledgment") or {}
        if acknowledgment.get("acknowledged") is True:
            return None

        record = meta.get("record") or {}
        tag = str(record.get("tagName") or "unknown").lower()
        label = record.get("ariaLabel") or record.get("id") or "unlabeled"
        logger.debug("[%s] %s: unacknowledged intentful %s '%s'", self.name, observation.id, tag, label)

        return CandidateFinding(
            type=FindingType.INTERACTION_SILENT_FAILURE,
            status=FindingStatus.SUSPECTED,
            severity=Severity.MEDIUM,
            confidence=self.settings.fallback_confidence,
            promise={"kind": "interaction", "value": f"{tag}:{label}", "element": tag},
            observed={
                "description": f"Intentful {tag} '{label}' was never acknowledged",
            },
            evidence={
                "interaction_intent": dict(classification),
                "acknowledgment": dict(acknowledgment),
                "element": {"tagName": tag, "role": record.get("role"), "label": label},
                "evidence_files": list(observation.evidence_files),
            },
            observation_id=observation.id,
            source=SourceLocation(file=f"runtime:{observation.id}"),
            signals=dict(observation.signals or {}),
            enrichment={"promise_source": "runtime-intent"},
            impact={
                "summary": "Interaction gives the user no acknowledgement",
                "user_visible": True,
            },
        )


def default_detectors(
        settings: Optional[DetectionSettings] = None,
        gate: Optional[EligibilityGate] = None) -> List[Detector]:
    """Detectors in evaluation order."""
    gate = gate or EligibilityGate()
    return [
        DeadInteractionDetector(settings, gate),
        BrokenNavigationDetector(settings, gate),
        SilentSubmissionDetector(settings, gate),
    ]
