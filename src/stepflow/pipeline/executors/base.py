"""Base protocol and types for step executors."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from stepflow.pipeline.definition import PipelineStatus

if TYPE_CHECKING:
    from stepflow.config import EngineConfig
    from stepflow.pipeline.clock import Clock
    from stepflow.pipeline.definition import PipelineStep


@dataclass
class StepOutcome:
    """Result of running one step operator.

    Attributes:
        status: Completed, failed or cancelled.
        output: Output document handed to the next step.
        error: Error message if not completed.
    """

    status: PipelineStatus
    output: Any = None
    error: str | None = None

    def __bool__(self) -> bool:
        """Return success status."""
        return self.status == PipelineStatus.COMPLETED

    @classmethod
    def completed(cls, output: Any) -> StepOutcome:
        return cls(status=PipelineStatus.COMPLETED, output=output)

    @classmethod
    def failed(cls, error: str, output: Any = None) -> StepOutcome:
        if output is None:
            output = {"error": error}
        return cls(status=PipelineStatus.FAILED, output=output, error=error or "Step failed")

    @classmethod
    def from_output(cls, output: Any) -> StepOutcome:
        """Build an outcome from an operator output.

        An output mapping carrying an ``error`` key is a failure.
        """
        if isinstance(output, dict) and "error" in output:
            error = output["error"]
            message = error if isinstance(error, str) else str(error)
            return cls.failed(message, output=output)
        return cls.completed(output)


@dataclass
class StepContext:
    """Dependencies available to step executors.

    Attributes:
        config: Engine configuration.
        clock: Time and latency source.
        cancel_event: Set when the owning execution is cancelled or the
            step's deadline has passed.
        execution_id: Execution the step belongs to.
    """

    config: EngineConfig
    clock: Clock
    cancel_event: threading.Event = field(default_factory=threading.Event)
    execution_id: str = ""


class StepExecutor(Protocol):
    """Protocol for step executors.

    Each step type has an executor holding no state of its own; the
    output is a new document and the input is never mutated.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,
    ) -> StepOutcome:
        """Run the step.

        Args:
            step: Step definition.
            data: Input document.
            ctx: Step context with dependencies.

        Returns:
            StepOutcome with the output document or error.
        """
        ...


def config_str(step: PipelineStep, key: str, default: str) -> str:
    """String value from the step config, or ``default``."""
    value = step.config.get(key)
    return value if isinstance(value, str) else default


def config_bool(step: PipelineStep, key: str, default: bool) -> bool:
    """Boolean value from the step config, or ``default``."""
    value = step.config.get(key)
    return value if isinstance(value, bool) else default
