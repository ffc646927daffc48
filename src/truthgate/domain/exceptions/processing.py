"""Detection pipeline exceptions."""

from typing import Optional
from .base import truthgateError

class ProcessingError(truthgateError):
    """Base class for processing pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        observation_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if stage:
            self.add_context('processing_stage', stage)
        if observation_id:
            self.add_context('observation_id', observation_id)


class DetectionError(ProcessingError):
    """Raised when a detector cannot evaluate an observation."""

    def __init__(
        self,
        message: str,
        *,
        detector: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, stage="detection", **kwargs)
        if detector:
            self.add_context('detector', detector)

    def _get_default_error_code(self) -> str:
        return "DETECTION_FAILED"


class PipelineConfigurationError(ProcessingError):
    """Raised when pipeline configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_field: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, stage="configuration", **kwargs)
        self.config_field = config_field
        if config_field:
            self.add_context('config_field', config_field)
        if expected_type:
            self.add_context('expected_type', expected_type)

        self.add_suggestion("Check the policy documents passed to the pipeline")

    def _get_default_error_code(self) -> str:
        return "PIPELINE_CONFIG_INVALID"
