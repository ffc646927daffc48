# config/resolvers.py
from pathlib import Path
from typing import Optional, Union

from platformdirs import user_config_dir

APP = "truthgate"
CONFIDENCE_POLICY_FILE = "confidence-policy.json"
GUARDRAILS_POLICY_FILE = "guardrails-policy.json"

def default_policy_dir() -> Path:
    return Path(user_config_dir(APP))

def resolve_policy_path(explicit: Optional[Union[str, Path]], filename: str) -> Optional[Path]:
    """
    Decide which policy document to load:
    - an explicit path is always used, existing or not (a missing file fails at load)
    - otherwise a file of that name in the per-user config directory, if present
    - otherwise None, meaning the embedded default
    """
    if explicit:
        return Path(explicit)
    candidate = default_policy_dir() / filename
    if candidate.is_file():
        return candidate
    return None
