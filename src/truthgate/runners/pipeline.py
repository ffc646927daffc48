import os
import time
import logging
import psutil
from tqdm import tqdm
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from truthgate.utils.logging import setup_logging
from truthgate.utils.timing import section_timer, timeit
from truthgate.config.loader import ConfigurationLoader, PolicyStore
from truthgate.config.settings import LoggingSettings, Settings
from truthgate.detection.detectors import InteractionIntentFallback, default_detectors
from truthgate.detection.eligibility import EligibilityGate
from truthgate.detection.silence import record_silence
from truthgate.domain.models import (
    CandidateFinding,
    DeterminismVerdict,
    EvidencePackage,
    Expectation,
    Finding,
    Observation,
    PipelineStats,
    SilenceSignal,
    coerce_enum,
)
from truthgate.guardrails.engine import GuardrailsEngine
from truthgate.results.assemblers import FindingAssembler, deduplicate_findings
from truthgate.results.constitution import ConstitutionValidator, ValidationSummary
from truthgate.scoring.confidence import ConfidenceEngine

from truthgate.domain.exceptions import (
    truthgateError,
    ConfigurationError,
    DetectionError,
    PipelineConfigurationError,
    ParameterValidationError,
    ProcessingError,
    ValidationError,
)

logger, summary_logger = setup_logging(
    console=True,
    level="INFO",
    quiet_console=True,     # Minimal console output during progress bar
    console_level="ERROR"   # Only errors to console
)

MEMORY_THRESHOLD_MB = 2000

@dataclass
class PipelineResult:
    """Pipeline execution result."""
    findings: List[Finding] = field(default_factory=list)
    observations: List[Observation] = field(default_factory=list)
    silence_signals: List[SilenceSignal] = field(default_factory=list)
    validation_summary: ValidationSummary = field(default_factory=ValidationSummary)
    stats: PipelineStats = field(default_factory=PipelineStats)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_metrics: bool = False) -> Dict[str, Any]:
        """JSON-ready output. Metrics hold timings and memory, so they are opt-in."""
        out = {
            "findings": [f.to_dict() for f in self.findings],
            "observations": [o.to_dict() for o in self.observations],
            "silenceSignals": [s.to_dict() for s in self.silence_signals],
            "validation": self.validation_summary.to_dict(),
            "stats": self.stats.to_dict(),
        }
        if include_metrics:
            out["metrics"] = dict(self.metrics)
        return out


class DetectionPipeline:
    """
    Expectations + observations in, validated findings out.

    Policies come from an injected PolicyStore; nothing is cached between
    runs, so one pipeline instance can be run repeatedly.
    """

    def __init__(
        self,
        policy_store: Optional[PolicyStore] = None,
        settings: Optional[Settings] = None,
        show_progress: Optional[bool] = None,
    ):
        self.settings = settings or ConfigurationLoader().load_defaults()
        self._configure_logging()
        if policy_store is None:
            policy_store = PolicyStore.from_settings(self.settings)
        if not isinstance(policy_store, PolicyStore):
            raise PipelineConfigurationError(
                f"policy_store must be a PolicyStore, got {type(policy_store).__name__}",
                config_field="policy_store",
                expected_type="PolicyStore",
            )
        self.policy_store = policy_store
        self.settings.detection.validate()

        detection = self.settings.detection
        gate = EligibilityGate()
        self.detectors = default_detectors(detection, gate)
        self.fallback = InteractionIntentFallback(detection)
        self.assembler = FindingAssembler(
            ConfidenceEngine(policy_store.confidence),
            GuardrailsEngine(policy_store.guardrails),
            id_length=detection.id_hash_length,
        )
        self.validator = ConstitutionValidator()

        if show_progress is None:
            show_progress = self.settings.show_progress and \
                not os.getenv('NO_PROGRESS', '').lower() in ['1', 'true', 'yes']
        self.show_progress = show_progress
        self.process = psutil.Process(os.getpid())
        self.start_time = None
        self.metrics: Dict[str, Any] = {}

    def run(
        self,
        expectations: Iterable[Union[Expectation, Mapping]],
        observations: Iterable[Union[Observation, Mapping]],
        determinism_verdict: Union[DeterminismVerdict, str] = DeterminismVerdict.DETERMINISTIC,
        evidence_package: Optional[Union[EvidencePackage, Mapping]] = None,
    ) -> PipelineResult:
        """Execute the complete pipeline."""
        self.start_time = time.time()
        self.metrics = {'timings': {}}
        timings = self.metrics['timings']
        stats = PipelineStats()

        try:
            with section_timer("inputs", logger, timings):
                expectation_index = self._index_expectations(self._coerce_expectations(expectations))
                observation_list = self._coerce_observations(observations)
                verdict = coerce_enum(DeterminismVerdict, determinism_verdict, "determinism_verdict")
                package = self._coerce_evidence_package(evidence_package)
            stats.observations = len(observation_list)
            summary_logger.info(
                f"[startup] {len(observation_list)} observations, {len(expectation_index)} expectations")

            with section_timer("detect", logger, timings):
                observation_list, pairs, silence_signals = self._detect(
                    observation_list, expectation_index, stats)
            stats.candidates = len(pairs)
            stats.silence_signals = len(silence_signals)

            with section_timer("assemble", logger, timings):
                findings = [
                    self.assembler.assemble(candidate, observation, expectation, verdict, package)
                    for candidate, observation, expectation in pairs
                ]

            with section_timer("validate", logger, timings):
                summary = self.validator.batch_validate(findings)
                unique, collapsed = deduplicate_findings(summary.valid)
            stats.dropped = len(summary.dropped)
            stats.downgraded = len(summary.downgraded)
            stats.duplicates = len(collapsed)
            stats.findings = len(unique)

            return self._finalize(PipelineResult(
                findings=unique,
                observations=observation_list,
                silence_signals=silence_signals,
                validation_summary=summary,
                stats=stats,
            ))

        except (ProcessingError, ValidationError, ConfigurationError):
            raise
        except Exception as e:
            exc = ProcessingError(
                f"Unexpected pipeline error: {str(e)}",
                stage="pipeline_execution"
            )
            exc.add_context('elapsed_time', time.time() - self.start_time)
            raise exc from e

    def _configure_logging(self) -> None:
        """Re-run logging setup when settings ask for more than the import-time defaults."""
        log = self.settings.logging
        if log == LoggingSettings() and not self.settings.debug_mode:
            return
        log.validate()
        level = "DEBUG" if self.settings.debug_mode else log.level.value
        setup_logging(
            log_dir=log.log_dir,
            console=log.console_output,
            level=level,
            quiet_console=log.quiet_console,
        )
        if self.settings.debug_mode:
            logger.debug("Configuration details:")
            for section, values in self.settings.to_dict().items():
                logger.debug("  %s: %s", section, values)

    # ---------- stages ----------
    def _detect(
        self,
        observations: List[Observation],
        expectation_index: Dict[str, Expectation],
        stats: PipelineStats,
    ) -> Tuple[List[Observation], List[Tuple[CandidateFinding, Observation, Optional[Expectation]]], List[SilenceSignal]]:
        pairs = []
        silence_signals = []
        updated = []

        pbar = None
        if self.show_progress and observations:
            pbar = tqdm(
                total=len(observations),
                desc="Detect",
                unit="obs",
                ncols=100,
                leave=False,
            )
        try:
            for observation in observations:
                expectation = expectation_index.get(observation.id)
                if expectation is not None:
                    stats.matched_observations += 1
                    for detector in self.detectors:
                        if not detector.applies_to(observation, expectation):
                            continue
                        outcome = self._run_detector(detector, observation, expectation)
                        if outcome.silence is not None:
                            silence_signals.append(outcome.silence)
                            observation = record_silence(observation, outcome.silence)
                        if outcome.candidate is not None:
                            pairs.append((outcome.candidate, observation, expectation))
                updated.append(observation)
                if pbar:
                    pbar.update(1)
                    pbar.set_postfix_str(f"candidates={len(pairs)}")
        finally:
            if pbar:
                pbar.close()

        for observation in updated:
            candidate = self.fallback.detect(observation)
            if candidate is not None:
                pairs.append((candidate, observation, None))

        logger.debug(f"[detect] {len(pairs)} candidates, {len(silence_signals)} silence signals")
        return updated, pairs, silence_signals

    @staticmethod
    def _run_detector(detector, observation: Observation, expectation: Expectation):
        try:
            return detector.detect(observation, expectation)
        except truthgateError:
            raise
        except Exception as e:
            raise DetectionError(
                f"{detector.name} failed on observation {observation.id}: {e}",
                detector=detector.name,
                observation_id=observation.id,
            ) from e

    # ---------- inputs ----------
    @staticmethod
    def _coerce_expectations(records) -> List[Expectation]:
        return [r if isinstance(r, Expectation) else Expectation.from_dict(r) for r in records or ()]

    @staticmethod
    def _coerce_observations(records) -> List[Observation]:
        return [r if isinstance(r, Observation) else Observation.from_dict(r) for r in records or ()]

    @staticmethod
    def _index_expectations(expectations: List[Expectation]) -> Dict[str, Expectation]:
        index = {}
        for expectation in expectations:
            if expectation.id in index:
                logger.warning(f"[input-check] Duplicate expectation id {expectation.id}; keeping the first")
                continue
            index[expectation.id] = expectation
        return index

    @staticmethod
    def _coerce_evidence_package(package) -> Optional[EvidencePackage]:
        if package is None or isinstance(package, EvidencePackage):
            return package
        if isinstance(package, Mapping):
            return EvidencePackage.from_dict(package)
        raise ParameterValidationError(
            "evidence_package", package, expected_type="EvidencePackage or mapping")

    # ---------- reporting ----------
    def _finalize(self, result: PipelineResult) -> PipelineResult:
        elapsed_time = time.time() - self.start_time
        result.stats.processing_time = elapsed_time
        self.metrics['processing_time'] = elapsed_time
        self.metrics['policies'] = self.policy_store.describe()
        self._memory_report("Final memory usage")
        result.metrics = dict(self.metrics)

        stats = result.stats
        summary_logger.info(
            f"[shutdown] Detection completed in {elapsed_time:.2f} seconds: "
            f"{stats.findings} findings from {stats.candidates} candidates "
            f"(dropped {stats.dropped}, downgraded {stats.downgraded}, duplicates {stats.duplicates}), "
            f"{stats.silence_signals} silence signals"
        )
        return result

    def _memory_report(self, label: str) -> None:
        """Record process memory usage."""
        try:
            rss = self.process.memory_info().rss / 1e6  # MB
        except psutil.Error as e:
            logger.debug(f"[mem] Could not get memory info: {e}")
            return
        self.metrics['rss_mb'] = round(rss, 1)
        logger.debug(f"[mem] {label} RSS={rss:.1f}MB")
        if rss > MEMORY_THRESHOLD_MB:
            logger.warning(f"[mem] High memory usage: {rss:.1f}MB (threshold: {MEMORY_THRESHOLD_MB}MB)")


@timeit(logger, "run_detection")
def run_detection(
    expectations,
    observations,
    determinism_verdict=DeterminismVerdict.DETERMINISTIC,
    evidence_package=None,
    policy_store: Optional[PolicyStore] = None,
    settings: Optional[Settings] = None,
    show_progress: Optional[bool] = None,
) -> PipelineResult:
    """Run the detection pipeline once with a default PolicyStore unless one is given."""
    pipeline = DetectionPipeline(policy_store, settings=settings, show_progress=show_progress)
    return pipeline.run(expectations, observations, determinism_verdict, evidence_package)
