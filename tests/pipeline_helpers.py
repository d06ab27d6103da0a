"""Step builders and custom step callables shared by the tests.

Callables here are referenced as ``pipeline_helpers:<name>`` in
``callable_path`` step configs.
"""

from __future__ import annotations

from typing import Any

from stepflow.exceptions import StepFailure
from stepflow.pipeline.definition import PipelineStep, StepType
from stepflow.pipeline.executors.base import StepContext, StepOutcome


def make_step(
    step_id: str,
    step_type: StepType = StepType.TEXT_PROCESSING,
    timeout_seconds: float = 30,
    **config: Any,
) -> PipelineStep:
    """Build a step whose name is derived from its id."""
    return PipelineStep(
        id=step_id,
        name=step_id.replace("-", " ").title(),
        step_type=step_type,
        config=config,
        timeout_seconds=timeout_seconds,
    )


def add_greeting(step: PipelineStep, data: Any, ctx: StepContext) -> dict[str, Any]:
    greeting = step.config.get("greeting", "hello")
    return {**data, "greeting": greeting}


def reject(step: PipelineStep, data: Any, ctx: StepContext) -> Any:
    raise StepFailure("Rejected by handler", output={"error": "Rejected by handler", "seen": data})


def silent_failure(step: PipelineStep, data: Any, ctx: StepContext) -> StepOutcome:
    return StepOutcome.failed("")


NOT_CALLABLE = 42
