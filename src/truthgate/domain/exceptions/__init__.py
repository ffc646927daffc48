"""Custom exceptions for the truthgate package."""

# Base exceptions
from .base import (
    truthgateError,
    ConfigurationError,
)

# Policy exceptions
from .policy import (
    PolicyError,
    PolicyLoadError,
    PolicyConfigurationError,
)

# Processing exceptions
from .processing import (
    ProcessingError,
    DetectionError,
    PipelineConfigurationError,
)

# Validation exceptions
from .validation import (
    ValidationError,
    InputValidationError,
    ParameterValidationError
)

__all__ = [
    # Base
    "truthgateError",
    "ConfigurationError",

    # Policy
    "PolicyError",
    "PolicyLoadError",
    "PolicyConfigurationError",

    # Processing
    "ProcessingError",
    "DetectionError",
    "PipelineConfigurationError",

    # Validation
    "ValidationError",
    "InputValidationError",
    "ParameterValidationError",
]
