"""Configuration and policy loading from CLI and programmatic sources."""

import copy
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from truthgate.config.resolvers import (
    CONFIDENCE_POLICY_FILE,
    GUARDRAILS_POLICY_FILE,
    resolve_policy_path,
)
from truthgate.config.settings import (
    ConfidencePolicy,
    DetectionSettings,
    GuardrailResolution,
    GuardrailsPolicy,
    LoggingSettings,
    LogLevel,
    Settings,
)
from truthgate.domain.exceptions import (
    ConfigurationError,
    PolicyConfigurationError,
    PolicyLoadError,
)

logger = logging.getLogger(__name__)

POLICY_KINDS = ("confidence", "guardrails")

class ConfigurationLoader:
    """Loads settings from CLI args, policy files and system defaults."""

    def load_policy_file(self, path: Union[str, Path], kind: str):
        """Read and validate one JSON policy document."""
        if kind not in POLICY_KINDS:
            raise PolicyConfigurationError(
                f"Unknown policy kind: {kind!r}", policy_kind=kind,
            ).add_suggestion(f"Use one of: {', '.join(POLICY_KINDS)}")
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError as e:
            raise PolicyLoadError(
                f"{kind} policy file not found: {path}",
                policy_kind=kind, policy_path=path,
            ) from e
        except json.JSONDecodeError as e:
            raise PolicyLoadError(
                f"{kind} policy file is not valid JSON: {path} ({e.msg} at line {e.lineno})",
                policy_kind=kind, policy_path=path,
            ) from e
        except OSError as e:
            raise PolicyLoadError(
                f"Could not read {kind} policy file {path}: {e}",
                policy_kind=kind, policy_path=path,
            ) from e

        try:
            if kind == "confidence":
                policy = ConfidencePolicy.from_document(document)
            else:
                policy = GuardrailsPolicy.from_document(document)
            policy.validate()
        except PolicyConfigurationError as e:
            e.add_context("policy_path", str(path))
            raise
        logger.info("[config] Loaded %s policy from %s", kind, path)
        return policy

    def load_from_cli_args(self, args) -> Settings:
        """Load configuration from CLI arguments."""
        try:
            settings = self.load_defaults()

            confidence_path = resolve_policy_path(
                getattr(args, 'confidence_policy', None), CONFIDENCE_POLICY_FILE)
            guardrails_path = resolve_policy_path(
                getattr(args, 'guardrails_policy', None), GUARDRAILS_POLICY_FILE)
            confidence = settings.confidence
            guardrails = settings.guardrails
            if confidence_path is not None:
                confidence = self.load_policy_file(confidence_path, "confidence")
            if guardrails_path is not None:
                guardrails = self.load_policy_file(guardrails_path, "guardrails")
            if hasattr(args, 'guardrail_resolution') and args.guardrail_resolution:
                try:
                    resolution = GuardrailResolution(args.guardrail_resolution)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Unknown guardrail resolution: {args.guardrail_resolution!r}",
                        config_field="guardrails.resolution",
                    ).add_suggestion("Use 'sequential' or 'precedence'") from e
                guardrails = replace(guardrails, resolution=resolution)

            logging_updates = {}
            if hasattr(args, 'log_dir') and args.log_dir:
                logging_updates['log_dir'] = Path(args.log_dir)
            if hasattr(args, 'debug') and args.debug:
                logging_updates['level'] = LogLevel.DEBUG

            show_progress = not getattr(args, 'no_progress', False)

            return replace(
                settings,
                confidence=confidence,
                guardrails=guardrails,
                logging=replace(settings.logging, **logging_updates),
                debug_mode=getattr(args, 'debug', False),
                show_progress=show_progress,
            )

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Failed to load configuration from CLI arguments: {str(e)}"
            ) from e

    def load_defaults(self) -> Settings:
        """Load default configuration settings."""
        return Settings(
            confidence=ConfidencePolicy(),
            guardrails=GuardrailsPolicy(),
            detection=DetectionSettings(
                dead_interaction_confidence=0.9,
                fallback_confidence=0.8,
                confirm_threshold=0.7,
                runtime_navigation_confirm_threshold=0.85,
                max_reasons=8,
                max_reason_length=80,
                id_hash_length=16,
            ),
            logging=LoggingSettings(
                level=LogLevel.INFO,
                log_dir=None,
                console_output=True,
                quiet_console=True,
            ),
            debug_mode=False,
            show_progress=True,
        )


@dataclass(frozen=True)
class PolicyStore:
    """
    Validated policies for the lifetime of a run.

    Built once and handed to the pipeline. Accessors return copies so a
    caller cannot change what later runs see.
    """
    _confidence: ConfidencePolicy = field(default_factory=ConfidencePolicy)
    _guardrails: GuardrailsPolicy = field(default_factory=GuardrailsPolicy)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyStore":
        settings.confidence.validate()
        settings.guardrails.validate()
        return cls(copy.deepcopy(settings.confidence), copy.deepcopy(settings.guardrails))

    @classmethod
    def load(
        cls,
        confidence_path: Optional[Union[str, Path]] = None,
        guardrails_path: Optional[Union[str, Path]] = None,
    ) -> "PolicyStore":
        """Load both policies, falling back to the embedded defaults."""
        loader = ConfigurationLoader()
        confidence_path = resolve_policy_path(confidence_path, CONFIDENCE_POLICY_FILE)
        guardrails_path = resolve_policy_path(guardrails_path, GUARDRAILS_POLICY_FILE)
        confidence = loader.load_policy_file(confidence_path, "confidence") \
            if confidence_path is not None else ConfidencePolicy()
        guardrails = loader.load_policy_file(guardrails_path, "guardrails") \
            if guardrails_path is not None else GuardrailsPolicy()
        confidence.validate()
        guardrails.validate()
        return cls(confidence, guardrails)

    @property
    def confidence(self) -> ConfidencePolicy:
        return copy.deepcopy(self._confidence)

    @property
    def guardrails(self) -> GuardrailsPolicy:
        return copy.deepcopy(self._guardrails)

    def describe(self) -> Dict[str, Any]:
        return {
            "confidence_version": self._confidence.version,
            "guardrails_version": self._guardrails.version,
            "guardrail_rules": len(self._guardrails.rules),
            "guardrail_resolution": self._guardrails.resolution.value,
        }


def configure_from_cli(args) -> Settings:
    """Main entry point to configure settings from CLI args."""
    loader = ConfigurationLoader()
    settings = loader.load_from_cli_args(args)
    settings.validate()
    return settings
