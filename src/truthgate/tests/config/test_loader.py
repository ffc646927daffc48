import dataclasses
import json
from argparse import Namespace
from unittest.mock import patch

import pytest

from truthgate.config.loader import ConfigurationLoader, PolicyStore, configure_from_cli
from truthgate.config.settings import (
    ConfidencePolicy,
    GuardrailResolution,
    GuardrailRule,
    GuardrailsPolicy,
    LogLevel,
    Settings,
)
from truthgate.domain.exceptions import (
    ConfigurationError,
    PolicyConfigurationError,
    PolicyLoadError,
)


@pytest.fixture(autouse=True)
def empty_user_config(tmp_path):
    """Point the per-user config directory at an empty temp dir."""
    user_dir = tmp_path / "user-config"
    user_dir.mkdir()
    with patch("truthgate.config.resolvers.default_policy_dir", return_value=user_dir):
        yield user_dir


@pytest.fixture
def loader():
    return ConfigurationLoader()


def write_json(path, document):
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


class TestLoadPolicyFile:

    def test_confidence_policy(self, loader, tmp_path):
        path = write_json(tmp_path / "c.json", {"version": 1, "thresholds": {"high": 0.9}})
        policy = loader.load_policy_file(path, "confidence")
        assert isinstance(policy, ConfidencePolicy)
        assert policy.thresholds["high"] == 0.9

    def test_guardrails_policy(self, loader, tmp_path):
        path = write_json(tmp_path / "g.json", {
            "version": 1,
            "resolution": "precedence",
            "rules": [{"id": "R-1", "evaluation": {"type": "analytics_only"}, "action": "INFO"}],
        })
        policy = loader.load_policy_file(str(path), "guardrails")
        assert [r.id for r in policy.rules] == ["R-1"]
        assert policy.resolution is GuardrailResolution.PRECEDENCE

    def test_unknown_kind(self, loader, tmp_path):
        with pytest.raises(PolicyConfigurationError):
            loader.load_policy_file(tmp_path / "x.json", "scoring")

    def test_missing_file(self, loader, tmp_path):
        with pytest.raises(PolicyLoadError) as exc:
            loader.load_policy_file(tmp_path / "absent.json", "confidence")
        assert exc.value.error_code == "POLICY_LOAD_FAILED"
        assert exc.value.context["policy_path"].endswith("absent.json")
        assert exc.value.context["policy_kind"] == "confidence"

    def test_invalid_json(self, loader, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PolicyLoadError, match="not valid JSON"):
            loader.load_policy_file(path, "guardrails")

    def test_invalid_content_carries_path(self, loader, tmp_path):
        path = write_json(tmp_path / "g.json", {
            "version": 1,
            "rules": [{"id": "R-1", "evaluation": {"type": "teleport"}, "action": "INFO"}],
        })
        with pytest.raises(PolicyConfigurationError) as exc:
            loader.load_policy_file(path, "guardrails")
        assert exc.value.error_code == "POLICY_INVALID"
        assert exc.value.context["policy_path"] == str(path)


class TestLoadFromCliArgs:

    def test_empty_namespace_gives_defaults(self, loader):
        settings = loader.load_from_cli_args(Namespace())
        assert settings.to_dict() == loader.load_defaults().to_dict()

    def test_flags(self, loader, tmp_path):
        args = Namespace(
            guardrail_resolution="precedence",
            log_dir=str(tmp_path / "logs"),
            debug=True,
            no_progress=True,
        )
        settings = loader.load_from_cli_args(args)
        assert settings.guardrails.resolution is GuardrailResolution.PRECEDENCE
        assert settings.logging.log_dir == tmp_path / "logs"
        assert settings.logging.level is LogLevel.DEBUG
        assert settings.debug_mode is True
        assert settings.show_progress is False

    def test_bad_resolution(self, loader):
        with pytest.raises(ConfigurationError) as exc:
            loader.load_from_cli_args(Namespace(guardrail_resolution="loudest"))
        assert exc.value.config_field == "guardrails.resolution"

    def test_explicit_policy_paths(self, loader, tmp_path):
        path = write_json(tmp_path / "c.json", {"version": 1, "missingSensorPenalty": 0.1})
        settings = loader.load_from_cli_args(Namespace(confidence_policy=str(path)))
        assert settings.confidence.missing_sensor_penalty == 0.1

    def test_missing_explicit_policy(self, loader, tmp_path):
        with pytest.raises(PolicyLoadError):
            loader.load_from_cli_args(Namespace(guardrails_policy=str(tmp_path / "absent.json")))

    def test_user_config_directory_is_consulted(self, loader, empty_user_config):
        write_json(empty_user_config / "guardrails-policy.json", {"version": 1, "rules": []})
        settings = loader.load_from_cli_args(Namespace())
        assert settings.guardrails.rules == []

    def test_unexpected_errors_are_wrapped(self, loader):
        with patch.object(loader, "load_defaults", side_effect=RuntimeError("disk on fire")):
            with pytest.raises(ConfigurationError, match="disk on fire"):
                loader.load_from_cli_args(Namespace())

    def test_configure_from_cli_validates(self, tmp_path):
        settings = configure_from_cli(Namespace(no_progress=True))
        assert isinstance(settings, Settings)
        assert settings.show_progress is False


class TestPolicyStore:

    def test_defaults(self):
        store = PolicyStore.load()
        assert store.describe() == {
            "confidence_version": 1,
            "guardrails_version": 1,
            "guardrail_rules": 7,
            "guardrail_resolution": "sequential",
        }

    def test_accessors_return_copies(self):
        store = PolicyStore()
        store.confidence.weights["guardrails"] = 0.0
        store.guardrails.rules.clear()
        assert store.confidence.weights["guardrails"] == 0.20
        assert len(store.guardrails.rules) == 7

    def test_store_is_frozen(self):
        store = PolicyStore()
        with pytest.raises(dataclasses.FrozenInstanceError):
            store._confidence = ConfidencePolicy()

    def test_from_settings_copies_and_validates(self):
        settings = Settings()
        store = PolicyStore.from_settings(settings)
        settings.guardrails.rules.clear()
        assert len(store.guardrails.rules) == 7

        bad = Settings(guardrails=GuardrailsPolicy(rules=[GuardrailRule("A", "nope", "INFO")]))
        with pytest.raises(PolicyConfigurationError):
            PolicyStore.from_settings(bad)

    def test_load_from_files(self, tmp_path):
        path = write_json(tmp_path / "g.json", {"version": 1, "resolution": "precedence"})
        store = PolicyStore.load(guardrails_path=path)
        assert store.describe()["guardrail_resolution"] == "precedence"
        with pytest.raises(PolicyLoadError):
            PolicyStore.load(confidence_path=tmp_path / "absent.json")
