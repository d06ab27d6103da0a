"""Simulated API call step executor."""

from __future__ import annotations

import copy
from typing import Any

import structlog

from stepflow.pipeline.constants import DEFAULT_API_METHOD, DEFAULT_API_URL
from stepflow.pipeline.definition import PipelineStatus, PipelineStep
from stepflow.pipeline.executors.base import StepContext, StepOutcome, config_str

logger = structlog.get_logger()


class ApiCallStepExecutor:
    """Executor for API call steps.

    No request is sent. The step waits the configured latency and returns
    a canned success envelope.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,
    ) -> StepOutcome:
        url = config_str(step, "url", DEFAULT_API_URL)
        method = config_str(step, "method", DEFAULT_API_METHOD)
        log = logger.bind(step_id=step.id, url=url, method=method)
        log.debug("Simulating API call")

        if not ctx.clock.sleep(ctx.config.api_delay(), ctx.cancel_event):
            log.info("API call interrupted")
            return StepOutcome(
                status=PipelineStatus.CANCELLED,
                output=None,
                error="API call interrupted",
            )

        return StepOutcome.completed({
            "api_call": {
                "url": url,
                "method": method,
                "status": "success",
                "response_code": 200,
            },
            "input_data": copy.deepcopy(data),
            "mock_response": {
                "message": "API call completed successfully",
                "timestamp": ctx.clock.now().isoformat(),
            },
        })
