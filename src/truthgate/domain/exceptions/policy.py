"""Policy document exceptions."""

from typing import Optional
from .base import ConfigurationError

class PolicyError(ConfigurationError):
    """Base class for policy document errors."""

    def __init__(
        self,
        message: str,
        *,
        policy_kind: Optional[str] = None,
        policy_path: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if policy_kind:
            self.add_context('policy_kind', policy_kind)
        if policy_path:
            self.add_context('policy_path', str(policy_path))

    def _get_default_error_code(self) -> str:
        return "POLICY_ERROR"


class PolicyLoadError(PolicyError):
    """Raised when a policy document cannot be read or parsed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.add_suggestion("Check that the policy file exists and contains valid JSON")

    def _get_default_error_code(self) -> str:
        return "POLICY_LOAD_FAILED"


class PolicyConfigurationError(PolicyError):
    """Raised when a policy document parses but its content is invalid."""

    def _get_default_error_code(self) -> str:
        return "POLICY_INVALID"
