import logging
import os
from argparse import Namespace
from unittest.mock import patch

import pytest

from truthgate.config.loader import ConfigurationLoader, PolicyStore, configure_from_cli
from truthgate.config.settings import GuardrailResolution, GuardrailsPolicy, Settings
from truthgate.domain.exceptions import (
    DetectionError,
    InputValidationError,
    ParameterValidationError,
    PipelineConfigurationError,
    ProcessingError,
)
from truthgate.domain.models import FindingStatus, FindingType
from truthgate.results.identity import compute_finding_id
from truthgate.runners.pipeline import DetectionPipeline, PipelineResult, run_detection
from truthgate.utils.logging import setup_logging


@pytest.fixture
def pipeline():
    return DetectionPipeline(show_progress=False)


@pytest.fixture
def toggle_case(make_observation, make_button, make_expectation, quiet_signals):
    signals = {**quiet_signals, "correlatedNetworkActivity": True}
    observation = make_observation(record=make_button(aria={"expanded": False}), signals=signals)
    return [make_expectation()], [observation]


@pytest.fixture
def runtime_nav_case(make_expectation, full_bundle):
    observation = {
        "id": "nav-1",
        "type": "navigation",
        "action": "navigate",
        "attempted": True,
        "actionSuccess": True,
        "signals": {
            "routeChanged": False,
            "navigationChanged": False,
            "outcomeAcknowledged": False,
            "meaningfulUIChange": False,
            "feedbackSeen": False,
        },
        "evidenceFiles": full_bundle,
        "evidence": {
            "runtimeNav": {"href": "/dashboard", "context": {"kind": "page"}},
            "routeData": {"before": "/home", "after": "/home"},
        },
    }
    expectation = make_expectation("nav-1", kind="navigation.runtime", value="/dashboard")
    return [expectation], [observation]


class TestScenarios:

    def test_clear_on_empty_list_is_informational(self, pipeline, make_observation, make_button,
                                                  make_expectation, quiet_signals):
        signals = {**quiet_signals, "uiSignals": {"emptyState": True}}
        observation = make_observation(record=make_button(ariaLabel="Clear all"), signals=signals)
        result = pipeline.run([make_expectation()], [observation])

        assert len(result.findings) == 1
        finding = result.findings[0]
        assert finding.type is FindingType.DEAD_INTERACTION
        assert finding.status is FindingStatus.INFORMATIONAL
        assert finding.confidence <= 0.3

    def test_runtime_navigation_break(self, pipeline, runtime_nav_case):
        result = pipeline.run(*runtime_nav_case)
        finding = result.findings[0]
        assert finding.type is FindingType.BROKEN_NAVIGATION
        assert finding.status is FindingStatus.CONFIRMED
        assert finding.confidence == pytest.approx(0.95)
        assert finding.confidence_report["level"] in ("HIGH", "MEDIUM", "UNPROVEN")
        assert finding.enrichment["evidence_categories"]

    def test_submission_without_trigger_signal(self, pipeline, make_expectation, full_bundle):
        observation = {
            "id": "sub-1",
            "type": "form",
            "action": "submit",
            "attempted": True,
            "actionSuccess": True,
            "signals": {"networkAttemptAfterSubmit": False},
            "evidenceFiles": full_bundle,
        }
        result = pipeline.run([make_expectation("sub-1", kind="submit", value="/api/signup")], [observation])

        assert result.findings == []
        assert result.observations[0].silence_detected["code"] == "submission_observables_unavailable"
        assert [s.code for s in result.silence_signals] == ["submission_observables_unavailable"]
        assert result.stats.silence_signals == 1
        assert result.stats.candidates == 0

    def test_toggle_with_network_only_is_downgraded(self, pipeline, toggle_case):
        result = pipeline.run(*toggle_case)
        finding = result.findings[0]
        assert finding.status is FindingStatus.SUSPECTED
        assert finding.confidence == pytest.approx(0.75)
        assert finding.guardrails["appliedRules"][0]["ruleId"] == "GUARD-001"

    def test_duplicate_candidates_collapse(self, pipeline, make_observation, make_expectation, quiet_signals):
        signals = {**quiet_signals, "submissionTriggered": True, "networkAttemptAfterSubmit": False}
        observation = make_observation(signals=signals)
        result = pipeline.run([make_expectation(kind="submit")], [observation])

        assert result.stats.candidates == 2
        assert result.stats.duplicates == 1
        assert len(result.findings) == 1
        assert result.findings[0].type is FindingType.DEAD_INTERACTION
        assert result.findings[0].id == compute_finding_id(
            "src/components/Toolbar.jsx", 12, 4, "submit", "#save")

    def test_unmatched_intentful_interaction(self, pipeline):
        observation = {
            "id": "obs-9",
            "type": "interaction",
            "action": "click",
            "signals": {"meaningfulDomChange": False},
            "evidence": {
                "interactionIntent": {
                    "classification": {"intentful": True},
                    "record": {"tagName": "DIV", "ariaLabel": "Open menu"},
                },
            },
        }
        result = pipeline.run([], [observation])
        finding = result.findings[0]
        assert finding.type is FindingType.INTERACTION_SILENT_FAILURE
        assert finding.status is FindingStatus.SUSPECTED
        assert finding.id == compute_finding_id("runtime:obs-9", None, None, "interaction", "div:Open menu")
        assert result.stats.matched_observations == 0


class TestRunOptions:

    def test_output_is_deterministic(self, toggle_case, runtime_nav_case):
        expectations = toggle_case[0] + runtime_nav_case[0]
        observations = toggle_case[1] + runtime_nav_case[1]
        first = run_detection(expectations, observations, show_progress=False).to_dict()
        second = run_detection(expectations, observations, show_progress=False).to_dict()
        assert first == second
        assert "metrics" not in first

    def test_non_deterministic_verdict_caps_confidence(self, pipeline, runtime_nav_case):
        result = pipeline.run(*runtime_nav_case, determinism_verdict="NON_DETERMINISTIC")
        assert result.findings[0].confidence == pytest.approx(0.6)

    def test_caller_evidence_package(self, pipeline, runtime_nav_case):
        package = {"isComplete": False, "missingEvidence": ["dom_diff"]}
        result = pipeline.run(*runtime_nav_case, evidence_package=package)
        finding = result.findings[0]
        assert finding.status is FindingStatus.SUSPECTED
        assert finding.confidence == pytest.approx(0.4)
        assert finding.guardrails["truthLocks"] == ["TRUTH_LOCK_EVIDENCE_INCOMPLETE"]

    def test_incomplete_package_never_beats_disabled_guardrails(self, pipeline, runtime_nav_case):
        package = {"isComplete": False, "missingEvidence": ["dom_diff"]}
        unguarded = DetectionPipeline(
            PolicyStore.from_settings(Settings(guardrails=GuardrailsPolicy(rules=[]))), show_progress=False)
        guarded = pipeline.run(*runtime_nav_case, evidence_package=package).findings[0]
        bare = unguarded.run(*runtime_nav_case, evidence_package=package).findings[0]
        assert bare.confidence == pytest.approx(0.6)
        assert guarded.confidence <= bare.confidence

    def test_injected_policy_store(self, runtime_nav_case):
        settings = Settings(guardrails=GuardrailsPolicy(rules=[], resolution=GuardrailResolution.PRECEDENCE))
        store = PolicyStore.from_settings(settings)
        result = DetectionPipeline(store, show_progress=False).run(
            *runtime_nav_case, evidence_package={"isComplete": False, "missingEvidence": ["dom_diff"]})
        finding = result.findings[0]
        assert finding.status is FindingStatus.CONFIRMED
        assert finding.confidence == pytest.approx(0.6)
        assert finding.guardrails["truthLocks"] == ["TRUTH_LOCK_EVIDENCE_INCOMPLETE"]

    def test_metrics_are_opt_in(self, pipeline, toggle_case):
        result = pipeline.run(*toggle_case)
        out = result.to_dict(include_metrics=True)
        assert set(out["metrics"]["timings"]) == {"inputs", "detect", "assemble", "validate"}
        assert out["metrics"]["policies"]["guardrail_rules"] == 7
        assert out["metrics"]["processing_time"] >= 0

    def test_duplicate_expectation_ids_keep_first(self, pipeline, toggle_case, caplog):
        expectations, observations = toggle_case
        second = dict(expectations[0], kind="submit")
        with caplog.at_level(logging.WARNING, logger="truthgate"):
            result = pipeline.run(expectations + [second], observations)
        assert result.findings[0].promise["kind"] == "click"
        assert "Duplicate expectation id exp-1" in caplog.text

    def test_empty_inputs(self, pipeline):
        result = pipeline.run([], [])
        assert isinstance(result, PipelineResult)
        assert result.to_dict()["stats"]["observations"] == 0
        assert result.findings == []

    def test_progress_switches(self):
        with patch.dict(os.environ, {"NO_PROGRESS": "1"}):
            assert DetectionPipeline().show_progress is False
        settings = ConfigurationLoader().load_defaults()
        settings.show_progress = False
        assert DetectionPipeline(settings=settings).show_progress is False
        assert DetectionPipeline(settings=settings, show_progress=True).show_progress is True

    def test_progress_bar_tracks_observations(self, toggle_case):
        with patch("truthgate.runners.pipeline.tqdm") as bar:
            DetectionPipeline(show_progress=True).run(*toggle_case)
        bar.assert_called_once()
        assert bar.call_args.kwargs["total"] == 1
        bar.return_value.update.assert_called_once_with(1)
        bar.return_value.close.assert_called_once()

    def test_pipeline_instance_is_reusable(self, pipeline, toggle_case):
        first = pipeline.run(*toggle_case).to_dict()
        second = pipeline.run(*toggle_case).to_dict()
        assert first == second


class TestErrors:

    def test_policy_store_type_is_checked(self):
        with pytest.raises(PipelineConfigurationError) as exc:
            DetectionPipeline(policy_store={"confidence": {}})
        assert exc.value.context["config_field"] == "policy_store"

    def test_bad_observation_record(self, pipeline):
        with pytest.raises(InputValidationError):
            pipeline.run([], [{"type": "interaction"}])

    def test_malformed_acknowledgment_is_an_input_error(self, pipeline):
        observation = {
            "id": "obs-9",
            "type": "interaction",
            "evidence": {
                "interactionIntent": {"classification": {"intentful": True}, "record": {"tagName": "DIV"}},
                "interactionAcknowledgment": "yes",
            },
        }
        with pytest.raises(InputValidationError) as exc:
            pipeline.run([], [observation])
        assert exc.value.context["field_name"] == "evidence.interactionAcknowledgment"

    def test_bad_verdict(self, pipeline):
        with pytest.raises(InputValidationError):
            pipeline.run([], [], determinism_verdict="MAYBE")

    def test_bad_evidence_package(self, pipeline):
        with pytest.raises(ParameterValidationError):
            pipeline.run([], [], evidence_package=["dom_diff"])

    def test_detector_failure_is_wrapped(self, pipeline, toggle_case):
        detector = pipeline.detectors[0]
        with patch.object(detector, "detect", side_effect=RuntimeError("snapshot unreadable")):
            with pytest.raises(DetectionError) as exc:
                pipeline.run(*toggle_case)
        assert exc.value.context["detector"] == "dead-interaction"
        assert exc.value.context["observation_id"] == "exp-1"

    def test_unexpected_failure_is_wrapped(self, pipeline, toggle_case):
        with patch.object(pipeline.validator, "batch_validate", side_effect=KeyError("status")):
            with pytest.raises(ProcessingError) as exc:
                pipeline.run(*toggle_case)
        assert exc.value.context["processing_stage"] == "pipeline_execution"
        assert "elapsed_time" in exc.value.context
        assert isinstance(exc.value.__cause__, KeyError)


class TestLoggingSettings:

    @pytest.fixture
    def restore_logging(self):
        yield
        setup_logging(console=True, level="INFO", quiet_console=True, console_level="ERROR")

    def test_debug_run_writes_log_file(self, tmp_path, toggle_case, restore_logging):
        settings = configure_from_cli(Namespace(debug=True, log_dir=str(tmp_path), no_progress=True))
        DetectionPipeline(settings=settings).run(*toggle_case)

        package_logger = logging.getLogger("truthgate")
        assert package_logger.level == logging.DEBUG
        for handler in package_logger.handlers:
            handler.flush()
        files = list(tmp_path.glob("truthgate_*.log"))
        assert len(files) == 1
        text = files[0].read_text(encoding="utf-8")
        assert "Configuration details:" in text
        assert "[guardrails]" in text and "GUARD-001" in text

    def test_default_settings_leave_logging_alone(self):
        with patch("truthgate.runners.pipeline.setup_logging") as setup:
            DetectionPipeline(show_progress=False)
        setup.assert_not_called()

    def test_logging_level_is_applied(self):
        settings = ConfigurationLoader().load_defaults()
        settings.logging.console_output = False
        with patch("truthgate.runners.pipeline.setup_logging") as setup:
            DetectionPipeline(settings=settings, show_progress=False)
        setup.assert_called_once_with(log_dir=None, console=False, level="INFO", quiet_console=True)
