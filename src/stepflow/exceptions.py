"""Custom exceptions for stepflow."""

from pathlib import Path
from typing import Any


class StepflowError(Exception):
    """Base exception for all stepflow errors."""

    pass


class ValidationError(StepflowError):
    """Raised when a pipeline or step definition is malformed."""

    def __init__(
        self,
        message: str,
        *,
        field: str = "",
        pipeline_id: str = "",
    ) -> None:
        super().__init__(message)
        self.field = field
        self.pipeline_id = pipeline_id


class NotFoundError(StepflowError):
    """Raised when a pipeline or execution id is unknown."""

    def __init__(
        self,
        message: str,
        *,
        kind: str = "pipeline",
        identifier: str = "",
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.identifier = identifier


class NotReadyError(StepflowError):
    """Raised when executing a pipeline that is not in the ready state."""

    def __init__(
        self,
        message: str,
        *,
        pipeline_id: str = "",
        status: str = "",
    ) -> None:
        super().__init__(message)
        self.pipeline_id = pipeline_id
        self.status = status


class StepFailure(StepflowError):
    """Raised by step handlers to report a domain-level failure.

    The runner records the failure on the step result instead of
    propagating it.
    """

    def __init__(
        self,
        message: str,
        *,
        output: Any = None,
    ) -> None:
        super().__init__(message)
        self.output = output


class StepTimeoutError(StepflowError):
    """Raised when a step exceeds its declared timeout."""

    def __init__(
        self,
        message: str,
        *,
        step_id: str = "",
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.step_id = step_id
        self.timeout_seconds = timeout_seconds


class ConfigError(StepflowError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_path: Path | None = None,
        field: str = "",
    ) -> None:
        super().__init__(message)
        self.config_path = config_path
        self.field = field
