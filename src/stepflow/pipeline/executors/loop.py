"""Loop step executor."""

from __future__ import annotations

import copy
from typing import Any

import structlog

from stepflow.pipeline.constants import DEFAULT_LOOP_ITERATIONS, MAX_LOOP_ITERATIONS
from stepflow.pipeline.definition import PipelineStatus, PipelineStep
from stepflow.pipeline.executors.base import StepContext, StepOutcome

logger = structlog.get_logger()


class LoopStepExecutor:
    """Executor for loop steps.

    Runs ``config.iterations`` mock iterations, at most
    ``MAX_LOOP_ITERATIONS``. No operator runs per iteration; each one
    yields a placeholder result. The loop stops early once the step's
    cancel event is set.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,
    ) -> StepOutcome:
        log = logger.bind(step_id=step.id)

        iterations = step.config.get("iterations", DEFAULT_LOOP_ITERATIONS)
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
            iterations = DEFAULT_LOOP_ITERATIONS
        if iterations > MAX_LOOP_ITERATIONS:
            log.warning("Clamping loop iterations", requested=iterations, limit=MAX_LOOP_ITERATIONS)
            iterations = MAX_LOOP_ITERATIONS

        log.debug("Running loop", iterations=iterations)

        results = []
        for i in range(iterations):
            if ctx.cancel_event.is_set():
                log.info("Loop interrupted", completed_iterations=i)
                return StepOutcome(
                    status=PipelineStatus.CANCELLED,
                    output=None,
                    error="Loop interrupted",
                )
            results.append({
                "iteration": i,
                "input": copy.deepcopy(data),
                "output": f"Iteration {i + 1} result",
            })

        return StepOutcome.completed({
            "loop_execution": {
                "iterations": iterations,
                "input": copy.deepcopy(data),
                "results": results,
            }
        })
