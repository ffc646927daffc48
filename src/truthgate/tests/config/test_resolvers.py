from pathlib import Path

from truthgate.config import resolvers
from truthgate.config.resolvers import CONFIDENCE_POLICY_FILE, resolve_policy_path


def test_explicit_path_wins_even_if_missing(tmp_path):
    explicit = tmp_path / "nowhere.json"
    assert resolve_policy_path(str(explicit), CONFIDENCE_POLICY_FILE) == explicit


def test_user_directory_file(tmp_path, monkeypatch):
    monkeypatch.setattr(resolvers, "default_policy_dir", lambda: tmp_path)
    assert resolve_policy_path(None, CONFIDENCE_POLICY_FILE) is None
    (tmp_path / CONFIDENCE_POLICY_FILE).write_text("{}")
    assert resolve_policy_path(None, CONFIDENCE_POLICY_FILE) == tmp_path / CONFIDENCE_POLICY_FILE
    assert resolve_policy_path("", CONFIDENCE_POLICY_FILE) == tmp_path / CONFIDENCE_POLICY_FILE


def test_default_dir_is_per_user():
    path = resolvers.default_policy_dir()
    assert isinstance(path, Path)
    assert "truthgate" in str(path)
