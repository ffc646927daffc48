"""Core configuration settings for truthgate."""

import copy
import logging
import re
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping, Tuple
from dataclasses import dataclass, field
from enum import Enum

from truthgate.config.defaults import (
    DEFAULT_CONFIDENCE_POLICY,
    DEFAULT_GUARDRAILS_POLICY,
    POLICY_VERSION,
)
from truthgate.domain.exceptions import ConfigurationError, PolicyConfigurationError

logger = logging.getLogger(__name__)

class LogLevel(Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class GuardrailResolution(Enum):
    """How competing guardrail status recommendations are resolved."""
    SEQUENTIAL = "sequential"   # last rule in id order wins
    PRECEDENCE = "precedence"   # BLOCK > DOWNGRADE > INFO

GUARDRAIL_ACTIONS = ("BLOCK", "DOWNGRADE", "INFO")

def rule_sort_key(rule_id: str) -> List[Any]:
    """Natural order for rule ids, so GUARD-2 sorts before GUARD-10."""
    parts = re.split(r"(\d+)", rule_id)
    return [int(p) if i % 2 else p for i, p in enumerate(parts)]

PILLARS = (
    "promiseStrength",
    "observationStrength",
    "correlationQuality",
    "guardrails",
    "evidenceCompleteness",
)

def _check_version(doc: Mapping, kind: str) -> None:
    version = doc.get("version")
    if version != POLICY_VERSION:
        raise PolicyConfigurationError(
            f"Unsupported {kind} policy version: {version!r}",
            config_field=f"{kind}.version",
            policy_kind=kind,
        ).add_suggestion(f"Set \"version\": {POLICY_VERSION}")

def _check_unit(value: Any, config_field: str, lower: float = 0.0) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not lower <= value <= 1.0:
        raise PolicyConfigurationError(
            f"{config_field} must be a number in [{lower:g}, 1], got {value!r}",
            config_field=config_field,
        )

@dataclass
class ConfidencePolicy:
    """Pillar weights, per-signal scores, thresholds and truth locks."""
    version: int = POLICY_VERSION
    weights: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_POLICY["weights"]))
    base_scores: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_POLICY["baseScores"]))
    thresholds: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_POLICY["thresholds"]))
    truth_locks: Dict[str, Any] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_POLICY["truthLocks"]))
    missing_sensor_penalty: float = DEFAULT_CONFIDENCE_POLICY["missingSensorPenalty"]

    @classmethod
    def from_document(cls, doc: Mapping) -> "ConfidencePolicy":
        """Build from a JSON document; absent sections fall back to the embedded default."""
        if not isinstance(doc, Mapping):
            raise PolicyConfigurationError(
                "Confidence policy must be a JSON object", policy_kind="confidence")
        _check_version(doc, "confidence")
        defaults = DEFAULT_CONFIDENCE_POLICY
        return cls(
            version=doc["version"],
            weights={**defaults["weights"], **(doc.get("weights") or {})},
            base_scores={**defaults["baseScores"], **(doc.get("baseScores") or {})},
            thresholds={**defaults["thresholds"], **(doc.get("thresholds") or {})},
            truth_locks={**defaults["truthLocks"], **(doc.get("truthLocks") or {})},
            missing_sensor_penalty=doc.get("missingSensorPenalty", defaults["missingSensorPenalty"]),
        )

    def validate(self) -> None:
        """Validate confidence policy."""
        unknown = sorted(set(self.weights) - set(PILLARS))
        if unknown:
            raise PolicyConfigurationError(
                f"Unknown pillar weights: {', '.join(unknown)}",
                config_field="confidence.weights",
            ).add_suggestion(f"Use only: {', '.join(PILLARS)}")
        for pillar in PILLARS:
            _check_unit(self.weights.get(pillar), f"confidence.weights.{pillar}")
        total = sum(self.weights[p] for p in PILLARS)
        if abs(total - 1.0) > 1e-6:
            raise PolicyConfigurationError(
                f"Pillar weights must sum to 1.0, got {total:.4f}",
                config_field="confidence.weights",
            )
        for key, value in self.base_scores.items():
            _check_unit(value, f"confidence.baseScores.{key}")
        for key, value in self.thresholds.items():
            _check_unit(value, f"confidence.thresholds.{key}")
        if self.thresholds["medium"] > self.thresholds["high"]:
            raise PolicyConfigurationError(
                "thresholds.medium must not exceed thresholds.high",
                config_field="confidence.thresholds",
            )
        for key in ("nonDeterministicMaxConfidence", "evidenceIncompleteMaxConfidence", "contradictionPenalty"):
            _check_unit(self.truth_locks.get(key), f"confidence.truthLocks.{key}")
        _check_unit(self.missing_sensor_penalty, "confidence.missingSensorPenalty")

    def to_document(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "weights": dict(self.weights),
            "baseScores": dict(self.base_scores),
            "thresholds": dict(self.thresholds),
            "truthLocks": dict(self.truth_locks),
            "missingSensorPenalty": self.missing_sensor_penalty,
        }

@dataclass(frozen=True)
class GuardrailRule:
    """One categorical guardrail rule."""
    id: str
    evaluation_type: str
    action: str
    applies_to: Tuple[str, ...] = ("*",)
    confidence_delta: float = 0.0
    category: str = "general"
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Mapping) -> "GuardrailRule":
        if not isinstance(doc, Mapping):
            raise PolicyConfigurationError(
                "Guardrail rule must be a JSON object", config_field="guardrails.rules")
        rule_id = doc.get("id")
        if not rule_id or not isinstance(rule_id, str):
            raise PolicyConfigurationError(
                "Guardrail rule is missing a string 'id'", config_field="guardrails.rules.id")
        evaluation = doc.get("evaluation") or {}
        applies_to = doc.get("appliesTo") or ["*"]
        if isinstance(applies_to, str) or not isinstance(applies_to, (list, tuple)):
            raise PolicyConfigurationError(
                f"Rule {rule_id}: appliesTo must be a list",
                config_field=f"guardrails.rules.{rule_id}.appliesTo",
            )
        return cls(
            id=rule_id,
            evaluation_type=str(evaluation.get("type") or ""),
            action=str(doc.get("action") or ""),
            applies_to=tuple(str(a) for a in applies_to),
            confidence_delta=doc.get("confidenceDelta", 0.0),
            category=str(doc.get("category") or "general"),
            code=doc.get("code"),
            message=doc.get("message"),
        )

    def applies_to_type(self, finding_type: str) -> bool:
        return any(cap == "*" or cap in finding_type for cap in self.applies_to)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "appliesTo": list(self.applies_to),
            "evaluation": {"type": self.evaluation_type},
            "action": self.action,
            "confidenceDelta": self.confidence_delta,
            "category": self.category,
            "message": self.message,
        }

@dataclass
class GuardrailsPolicy:
    """Versioned guardrail rule list."""
    version: int = POLICY_VERSION
    rules: List[GuardrailRule] = field(default_factory=lambda: [
        GuardrailRule.from_document(r) for r in DEFAULT_GUARDRAILS_POLICY["rules"]
    ])
    resolution: GuardrailResolution = GuardrailResolution.SEQUENTIAL

    @classmethod
    def from_document(cls, doc: Mapping) -> "GuardrailsPolicy":
        if not isinstance(doc, Mapping):
            raise PolicyConfigurationError(
                "Guardrails policy must be a JSON object", policy_kind="guardrails")
        _check_version(doc, "guardrails")
        rules = doc.get("rules")
        if rules is None:
            rules = DEFAULT_GUARDRAILS_POLICY["rules"]
        if not isinstance(rules, list):
            raise PolicyConfigurationError(
                "guardrails.rules must be a list", config_field="guardrails.rules")
        resolution = doc.get("resolution", GuardrailResolution.SEQUENTIAL.value)
        try:
            resolution = GuardrailResolution(resolution)
        except ValueError as e:
            raise PolicyConfigurationError(
                f"Unknown guardrail resolution: {resolution!r}",
                config_field="guardrails.resolution",
            ).add_suggestion("Use 'sequential' or 'precedence'") from e
        return cls(
            version=doc["version"],
            rules=[GuardrailRule.from_document(r) for r in rules],
            resolution=resolution,
        )

    @property
    def ordered_rules(self) -> List[GuardrailRule]:
        return sorted(self.rules, key=lambda r: rule_sort_key(r.id))

    def validate(self) -> None:
        """Validate guardrail rules. Unknown evaluation types are rejected here."""
        from truthgate.guardrails.rules import EVALUATORS

        seen = set()
        for rule in self.rules:
            if rule.id in seen:
                raise PolicyConfigurationError(
                    f"Duplicate guardrail rule id: {rule.id}",
                    config_field="guardrails.rules.id",
                )
            seen.add(rule.id)
            if rule.evaluation_type not in EVALUATORS:
                raise PolicyConfigurationError(
                    f"Rule {rule.id}: unknown evaluation type {rule.evaluation_type!r}",
                    config_field=f"guardrails.rules.{rule.id}.evaluation.type",
                ).add_suggestion(f"Use one of: {', '.join(sorted(EVALUATORS))}")
            if rule.action not in GUARDRAIL_ACTIONS:
                raise PolicyConfigurationError(
                    f"Rule {rule.id}: unknown action {rule.action!r}",
                    config_field=f"guardrails.rules.{rule.id}.action",
                ).add_suggestion(f"Use one of: {', '.join(GUARDRAIL_ACTIONS)}")
            delta = rule.confidence_delta
            if not isinstance(delta, (int, float)) or isinstance(delta, bool) or not -1.0 <= delta <= 1.0:
                raise PolicyConfigurationError(
                    f"Rule {rule.id}: confidenceDelta must be in [-1, 1]",
                    config_field=f"guardrails.rules.{rule.id}.confidenceDelta",
                )

    def to_document(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "resolution": self.resolution.value,
            "rules": [r.to_document() for r in self.rules],
        }

@dataclass
class DetectionSettings:
    """Detector constants."""
    dead_interaction_confidence: float = 0.9
    fallback_confidence: float = 0.8
    confirm_threshold: float = 0.7
    runtime_navigation_confirm_threshold: float = 0.85
    max_reasons: int = 8
    max_reason_length: int = 80
    id_hash_length: int = 16

    def validate(self) -> None:
        """Validate detection settings."""
        for name in ("dead_interaction_confidence", "fallback_confidence",
                     "confirm_threshold", "runtime_navigation_confirm_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"{name} must be within [0, 1]",
                    config_field=f"detection.{name}"
                )
        if self.max_reasons <= 0 or self.max_reason_length <= 0:
            raise ConfigurationError(
                "Reason caps must be positive",
                config_field="detection.max_reasons"
            )
        if not 8 <= self.id_hash_length <= 64:
            raise ConfigurationError(
                "id_hash_length must be between 8 and 64",
                config_field="detection.id_hash_length"
            ).add_suggestion("The default of 16 hex characters is usually enough")

@dataclass
class LoggingSettings:
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    log_dir: Optional[Path] = None
    console_output: bool = True
    quiet_console: bool = True

    def validate(self) -> None:
        """Validate logging settings."""
        if self.log_dir and self.log_dir.exists() and not self.log_dir.is_dir():
            raise ConfigurationError(
                f"Log path is not a directory: {self.log_dir}",
                config_field="logging.log_dir"
            ).add_suggestion("Point log_dir at a directory or use console logging only")

@dataclass
class Settings:
    """Main configuration settings for truthgate."""

    confidence: ConfidencePolicy = field(default_factory=ConfidencePolicy)
    guardrails: GuardrailsPolicy = field(default_factory=GuardrailsPolicy)
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    # Debug/development settings
    debug_mode: bool = False
    show_progress: bool = True

    def validate(self) -> None:
        """Validate all configuration settings."""
        try:
            self.confidence.validate()
            self.guardrails.validate()
            self.detection.validate()
            self.logging.validate()

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Configuration validation failed: {str(e)}"
            ) from e

    def copy(self) -> "Settings":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        """Convert settings to dictionary for debugging."""
        return {
            'confidence': self.confidence.to_document(),
            'guardrails': self.guardrails.to_document(),
            'detection': {
                'dead_interaction_confidence': self.detection.dead_interaction_confidence,
                'fallback_confidence': self.detection.fallback_confidence,
                'confirm_threshold': self.detection.confirm_threshold,
                'runtime_navigation_confirm_threshold': self.detection.runtime_navigation_confirm_threshold,
            },
            'logging': {
                'level': self.logging.level.value,
                'log_dir': str(self.logging.log_dir) if self.logging.log_dir else None,
            },
            'runtime': {
                'debug_mode': self.debug_mode,
                'show_progress': self.show_progress,
            }
        }
