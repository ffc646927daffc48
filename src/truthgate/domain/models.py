"""Core domain models for the truth-judgment pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple, Mapping

from truthgate.domain.exceptions import InputValidationError

class FindingStatus(Enum):
    """Finding status, ordered by privilege."""
    INFORMATIONAL = "INFORMATIONAL"
    SUSPECTED = "SUSPECTED"
    CONFIRMED = "CONFIRMED"

    @property
    def privilege(self) -> int:
        return _STATUS_PRIVILEGE[self]

    @classmethod
    def lowest(cls, *statuses: "FindingStatus") -> "FindingStatus":
        """Return the least privileged of the given statuses."""
        return min(statuses, key=lambda s: s.privilege)

_STATUS_PRIVILEGE = {
    FindingStatus.INFORMATIONAL: 0,
    FindingStatus.SUSPECTED: 1,
    FindingStatus.CONFIRMED: 2,
}

class Severity(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

class FindingType(Enum):
    """Closed set of finding types a caller may receive."""
    SILENT_FAILURE = "silent_failure"
    NAVIGATION_SILENT_FAILURE = "navigation_silent_failure"
    FLOW_SILENT_FAILURE = "flow_silent_failure"
    OBSERVED_BREAK = "observed_break"
    VALIDATION_SILENT_FAILURE = "validation_silent_failure"
    MISSING_STATE_ACTION = "missing_state_action"
    DEAD_INTERACTION = "dead_interaction_silent_failure"
    BROKEN_NAVIGATION = "broken_navigation_promise"
    SILENT_SUBMISSION = "silent_submission"
    INVISIBLE_STATE_FAILURE = "invisible_state_failure"
    STUCK_OR_PHANTOM_LOADING = "stuck_or_phantom_loading"
    SILENT_PERMISSION_WALL = "silent_permission_wall"
    RENDER_FAILURE = "render_failure"
    INTERACTION_SILENT_FAILURE = "interaction_silent_failure"

class DeterminismVerdict(Enum):
    DETERMINISTIC = "DETERMINISTIC"
    NON_DETERMINISTIC = "NON_DETERMINISTIC"

class ConfidenceLevel(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    UNPROVEN = "UNPROVEN"


def coerce_enum(enum_cls, value, field_name: str):
    """Map a raw value (or enum member) onto ``enum_cls``."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InputValidationError(
            f"Unknown {enum_cls.__name__} value: {value!r}",
            field_name=field_name,
            field_value=value,
        ) from e


def _bool(value) -> bool:
    """Only an explicit ``True`` counts as set."""
    return value is True


def _mapping_field(container: Mapping, key: str, record_id: str, field_name: str) -> Dict[str, Any]:
    """``container[key]`` as a dict; None means empty, other non-mappings are rejected."""
    value = container.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InputValidationError(
            f"{field_name} must be an object, got {type(value).__name__}",
            record_kind="observation",
            record_id=record_id,
            field_name=field_name,
        )
    return dict(value)


def normalize_href_kind(raw_href) -> Dict[str, Any]:
    """Classify an href attribute without keeping the URL itself."""
    if not isinstance(raw_href, str):
        return {"present": False, "kind": None}
    href = raw_href.strip()
    if not href:
        return {"present": False, "kind": None}
    if href == "#" or (href.endswith("#") and not href.startswith("#")):
        return {"present": True, "kind": "noop_hash"}
    if href.startswith("#"):
        return {"present": True, "kind": "hash_only"}
    if href.lower().startswith("javascript:"):
        return {"present": True, "kind": "noop_js"}
    if href.startswith("/"):
        return {"present": True, "kind": "relative"}
    if href.startswith("http://") or href.startswith("https://"):
        return {"present": True, "kind": "absolute"}
    return {"present": True, "kind": "other"}


def build_toggle_delta(before: Optional[Mapping], after: Optional[Mapping]) -> Optional[Dict[str, bool]]:
    """Derive toggle-state change flags from before/after element state."""
    if not before or not after:
        return None
    before_aria = before.get("aria") or {}
    after_aria = after.get("aria") or {}
    before_control = before.get("control") or {}
    after_control = after.get("control") or {}
    return {
        "ariaExpandedChanged": before_aria.get("expanded") != after_aria.get("expanded"),
        "ariaPressedChanged": before_aria.get("pressed") != after_aria.get("pressed"),
        "ariaCheckedChanged": before_aria.get("checked") != after_aria.get("checked"),
        "controlCheckedChanged": before_control.get("checked") != after_control.get("checked"),
    }


@dataclass(frozen=True)
class SourceLocation:
    """Where a promise was extracted from."""
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "SourceLocation":
        data = data or {}
        return cls(file=data.get("file"), line=data.get("line"), column=data.get("column"))

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}


@dataclass(frozen=True)
class Expectation:
    """A statically extracted promise about interactive behaviour."""
    id: str
    kind: str
    value: Optional[str] = None
    source: SourceLocation = field(default_factory=SourceLocation)
    confidence_hint: Optional[float] = None
    selector_hint: Optional[str] = None
    proof: Optional[str] = None

    @property
    def is_runtime_navigation(self) -> bool:
        return self.kind == "navigation.runtime"

    @classmethod
    def from_dict(cls, data: Mapping) -> "Expectation":
        if not isinstance(data, Mapping):
            raise InputValidationError("Expectation must be a mapping", record_kind="expectation")
        exp_id = data.get("id")
        if not exp_id:
            raise InputValidationError("Expectation is missing 'id'", record_kind="expectation")
        kind = data.get("kind") or data.get("type")
        if not kind:
            raise InputValidationError(
                "Expectation is missing 'kind'", record_kind="expectation", record_id=str(exp_id)
            )
        hint = data.get("confidenceHint", data.get("confidence"))
        return cls(
            id=str(exp_id),
            kind=str(kind),
            value=data.get("value"),
            source=SourceLocation.from_dict(data.get("source")),
            confidence_hint=float(hint) if isinstance(hint, (int, float)) else None,
            selector_hint=data.get("selectorHint"),
            proof=data.get("proof"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "value": self.value,
            "source": self.source.to_dict(),
            "confidenceHint": self.confidence_hint,
            "selectorHint": self.selector_hint,
            "proof": self.proof,
        }


@dataclass(frozen=True)
class ElementSnapshot:
    """Runtime capture of the element that was exercised."""
    tag_name: str = "unknown"
    role: Optional[str] = None
    type: Optional[str] = None
    disabled: bool = False
    aria_disabled: bool = False
    visible: bool = False
    width: float = 0.0
    height: float = 0.0
    aria_label: Optional[str] = None
    text: Optional[str] = None
    element_id: Optional[str] = None
    href_present: bool = False
    href_kind: Optional[str] = None
    form: Dict[str, Any] = field(default_factory=dict)
    has_on_click: bool = False
    aria: Dict[str, Any] = field(default_factory=dict)
    control: Dict[str, Any] = field(default_factory=dict)
    delta: Optional[Dict[str, bool]] = None
    event_type: str = "click"
    aria_live: Optional[str] = None
    nested_in_button: bool = False
    nested_in_link: bool = False

    @property
    def is_actionable(self) -> bool:
        """Visible, enabled and with a non-zero footprint."""
        if self.disabled or self.aria_disabled:
            return False
        if self.visible is not True:
            return False
        return self.width > 0 and self.height > 0

    @property
    def label(self) -> Optional[str]:
        return self.aria_label or self.text or self.element_id

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> Optional["ElementSnapshot"]:
        if not data:
            return None
        href = data.get("href")
        if isinstance(href, Mapping):
            href_info = {"present": _bool(href.get("present")), "kind": href.get("kind")}
        else:
            href_info = normalize_href_kind(href)
        box = data.get("boundingBox") or {}
        delta = data.get("delta")
        if delta is None and data.get("after"):
            delta = build_toggle_delta(data, data.get("after"))
        return cls(
            tag_name=str(data.get("tagName") or "unknown"),
            role=data.get("role"),
            type=data.get("type"),
            disabled=_bool(data.get("disabled")),
            aria_disabled=_bool(data.get("ariaDisabled")),
            visible=_bool(data.get("visible")),
            width=float(box.get("width") or 0),
            height=float(box.get("height") or 0),
            aria_label=data.get("ariaLabel"),
            text=data.get("text"),
            element_id=data.get("id"),
            href_present=href_info["present"],
            href_kind=href_info["kind"],
            form=dict(data.get("form") or {}),
            has_on_click=_bool(data.get("hasOnClick")),
            aria=dict(data.get("aria") or {}),
            control=dict(data.get("control") or {}),
            delta=dict(delta) if delta else None,
            event_type=str(data.get("eventType") or "click"),
            aria_live=data.get("ariaLive"),
            nested_in_button=_bool(data.get("nestedInButton")),
            nested_in_link=_bool(data.get("nestedInLink")),
        )


@dataclass(frozen=True)
class Observation:
    """A recorded runtime attempt, with captured signals and evidence."""
    id: str
    type: Optional[str] = None
    action: Optional[str] = None
    attempted: bool = False
    action_success: bool = False
    signals: Dict[str, Any] = field(default_factory=dict)
    evidence_files: Tuple[str, ...] = ()
    evidence: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    silence_detected: Optional[Dict[str, Any]] = None

    @property
    def intent_record(self) -> Optional[Dict[str, Any]]:
        intent = self.evidence.get("interactionIntent") or {}
        record = intent.get("record")
        return record if isinstance(record, Mapping) else None

    @property
    def snapshot(self) -> Optional[ElementSnapshot]:
        return ElementSnapshot.from_dict(self.intent_record)

    @property
    def route_data(self) -> Dict[str, Any]:
        return self.evidence.get("routeData") or {}

    @property
    def runtime_navigation(self) -> Optional[Dict[str, Any]]:
        nav = self.evidence.get("runtimeNav")
        return nav if isinstance(nav, Mapping) else None

    @classmethod
    def from_dict(cls, data: Mapping) -> "Observation":
        if not isinstance(data, Mapping):
            raise InputValidationError("Observation must be a mapping", record_kind="observation")
        obs_id = data.get("id") or data.get("expectationId")
        if not obs_id:
            raise InputValidationError("Observation is missing 'id'", record_kind="observation")
        files = data.get("evidenceFiles") or []
        if isinstance(files, str) or not isinstance(files, (list, tuple)):
            raise InputValidationError(
                "evidenceFiles must be a list of paths",
                record_kind="observation",
                record_id=str(obs_id),
                field_name="evidenceFiles",
            )
        obs_id = str(obs_id)
        signals = _mapping_field(data, "signals", obs_id, "signals")
        evidence = _mapping_field(data, "evidence", obs_id, "evidence")
        for key in ("interactionIntent", "interactionAcknowledgment", "routeData"):
            _mapping_field(evidence, key, obs_id, f"evidence.{key}")
        intent = evidence.get("interactionIntent") or {}
        for key in ("classification", "record"):
            _mapping_field(intent, key, obs_id, f"evidence.interactionIntent.{key}")
        return cls(
            id=obs_id,
            type=data.get("type"),
            action=data.get("action"),
            attempted=_bool(data.get("attempted")),
            action_success=_bool(data.get("actionSuccess")),
            signals=signals,
            evidence_files=tuple(str(f) for f in files),
            evidence=evidence,
            reason=data.get("reason"),
            silence_detected=data.get("silenceDetected"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "type": self.type,
            "action": self.action,
            "attempted": self.attempted,
            "actionSuccess": self.action_success,
            "signals": self.signals,
            "evidenceFiles": list(self.evidence_files),
            "evidence": self.evidence,
            "reason": self.reason,
        }
        if self.silence_detected is not None:
            out["silenceDetected"] = self.silence_detected
        return out


@dataclass(frozen=True)
class SilenceSignal:
    """Auditable record of a judgment the pipeline declined to make."""
    kind: str
    code: str
    observation_id: str
    action: Optional[str] = None
    expectation_id: Optional[str] = None
    intent: Optional[str] = None
    intent_reasons: Tuple[str, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict)
    scope: str = "interaction"

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "kind": self.kind,
            "code": self.code,
            "scope": self.scope,
            "action": self.action,
            "expectationId": self.expectation_id,
            "intent": self.intent,
            "intentReasons": list(self.intent_reasons),
        }
        if self.details:
            out["details"] = self.details
        return out


@dataclass(frozen=True)
class EvidencePackage:
    """Completeness of the proof bundle behind a finding."""
    is_complete: bool
    missing_evidence: Tuple[str, ...] = ()

    @classmethod
    def from_files(cls, files) -> "EvidencePackage":
        files = [str(f).lower() for f in files or ()]
        missing = []
        if not any("before" in f and f.endswith(".png") for f in files):
            missing.append("before_screenshot")
        if not any("after" in f and f.endswith(".png") for f in files):
            missing.append("after_screenshot")
        if not any("dom_diff" in f and f.endswith(".json") for f in files):
            missing.append("dom_diff")
        return cls(is_complete=not missing, missing_evidence=tuple(missing))

    @classmethod
    def from_dict(cls, data: Mapping) -> "EvidencePackage":
        return cls(
            is_complete=_bool(data.get("isComplete")),
            missing_evidence=tuple(data.get("missingEvidence") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"isComplete": self.is_complete, "missingEvidence": list(self.missing_evidence)}


@dataclass
class CandidateFinding:
    """A finding under evaluation. Never handed to callers."""
    type: FindingType
    status: FindingStatus
    severity: Severity
    confidence: float
    promise: Dict[str, Any]
    observed: Dict[str, Any]
    evidence: Dict[str, Any]
    observation_id: str
    source: SourceLocation = field(default_factory=SourceLocation)
    expectation_id: Optional[str] = None
    signals: Dict[str, Any] = field(default_factory=dict)
    enrichment: Dict[str, Any] = field(default_factory=dict)
    impact: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Finding:
    """A validated, identity-stable judgment."""
    id: str
    type: FindingType
    status: FindingStatus
    severity: Severity
    confidence: float
    promise: Dict[str, Any]
    observed: Dict[str, Any]
    evidence: Dict[str, Any]
    observation_id: Optional[str] = None
    source: SourceLocation = field(default_factory=SourceLocation)
    expectation_id: Optional[str] = None
    signals: Dict[str, Any] = field(default_factory=dict)
    enrichment: Dict[str, Any] = field(default_factory=dict)
    impact: Dict[str, Any] = field(default_factory=dict)
    confidence_report: Dict[str, Any] = field(default_factory=dict)
    guardrails: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_candidate(
        cls,
        candidate: CandidateFinding,
        finding_id: str,
        *,
        confidence: Optional[float] = None,
        status: Optional[FindingStatus] = None,
        confidence_report: Optional[Dict[str, Any]] = None,
        guardrails: Optional[Dict[str, Any]] = None,
    ) -> "Finding":
        return cls(
            id=finding_id,
            type=candidate.type,
            status=status or candidate.status,
            severity=candidate.severity,
            confidence=candidate.confidence if confidence is None else confidence,
            promise=dict(candidate.promise),
            observed=dict(candidate.observed),
            evidence=dict(candidate.evidence),
            observation_id=candidate.observation_id,
            source=candidate.source,
            expectation_id=candidate.expectation_id,
            signals=dict(candidate.signals),
            enrichment=dict(candidate.enrichment),
            impact=dict(candidate.impact),
            confidence_report=dict(confidence_report or {}),
            guardrails=dict(guardrails or {}),
        )

    @classmethod
    def from_dict(cls, data: Mapping) -> "Finding":
        return cls(
            id=str(data.get("id")),
            type=coerce_enum(FindingType, data.get("type"), "type"),
            status=coerce_enum(FindingStatus, data.get("status"), "status"),
            severity=coerce_enum(Severity, data.get("severity"), "severity"),
            confidence=float(data.get("confidence")),
            promise=dict(data.get("promise") or {}),
            observed=dict(data.get("observed") or {}),
            evidence=dict(data.get("evidence") or {}),
            observation_id=data.get("observationId"),
            source=SourceLocation.from_dict(data.get("source")),
            expectation_id=data.get("expectationId"),
            signals=dict(data.get("signals") or {}),
            enrichment=dict(data.get("enrichment") or {}),
            impact=dict(data.get("impact") or {}),
            confidence_report=dict(data.get("confidenceReport") or {}),
            guardrails=dict(data.get("guardrails") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "promise": self.promise,
            "observed": self.observed,
            "evidence": self.evidence,
            "observationId": self.observation_id,
            "source": self.source.to_dict(),
            "expectationId": self.expectation_id,
            "signals": self.signals,
            "enrichment": self.enrichment,
            "impact": self.impact,
            "confidenceReport": self.confidence_report,
            "guardrails": self.guardrails,
        }


@dataclass
class PipelineStats:
    """Counters from a detection run."""
    observations: int = 0
    matched_observations: int = 0
    candidates: int = 0
    findings: int = 0
    dropped: int = 0
    downgraded: int = 0
    duplicates: int = 0
    silence_signals: int = 0
    processing_time: float = 0.0

    @property
    def match_rate(self) -> float:
        """Share of observations that matched an expectation."""
        if self.observations == 0:
            return 0.0
        return self.matched_observations / self.observations

    @property
    def survival_rate(self) -> float:
        """Share of candidates that became findings."""
        if self.candidates == 0:
            return 0.0
        return self.findings / self.candidates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "observations": self.observations,
            "matched_observations": self.matched_observations,
            "candidates": self.candidates,
            "findings": self.findings,
            "dropped": self.dropped,
            "downgraded": self.downgraded,
            "duplicates": self.duplicates,
            "silence_signals": self.silence_signals,
        }
