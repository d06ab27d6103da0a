"""Condition step executor."""

from __future__ import annotations

import copy
from typing import Any

import structlog

from stepflow.pipeline import pointer
from stepflow.pipeline.definition import PipelineStep
from stepflow.pipeline.executors.base import StepContext, StepOutcome, config_str

logger = structlog.get_logger()

_ABSENT = object()


class ConditionStepExecutor:
    """Executor for condition steps.

    Conditions (``config.condition``, default ``exists``):
        exists: Whether ``config.field`` is present in the input.
        equals: Whether the value at ``config.field`` equals ``config.value``.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,  # noqa: ARG002
    ) -> StepOutcome:
        condition = config_str(step, "condition", "exists")
        field = config_str(step, "field", "")
        logger.debug("Evaluating condition", step_id=step.id, condition=condition, field=field)

        if condition == "exists":
            present = not field or pointer.exists(data, pointer.to_pointer(field))
            return StepOutcome.completed({
                "condition": condition,
                "field": field,
                "exists": present,
                "result": present,
            })

        if condition == "equals":
            current = pointer.resolve(data, pointer.to_pointer(field), _ABSENT)
            expected = step.config.get("value", _ABSENT)
            if current is _ABSENT or expected is _ABSENT:
                matches = current is expected
            else:
                matches = _json_equal(current, expected)
            return StepOutcome.completed({
                "condition": condition,
                "field": field,
                "expected": None if expected is _ABSENT else copy.deepcopy(expected),
                "current": None if current is _ABSENT else copy.deepcopy(current),
                "result": matches,
            })

        return StepOutcome.failed(f"Unknown condition: {condition}")


def _json_equal(left: Any, right: Any) -> bool:
    # JSON booleans are not numbers: True must not equal 1
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            _json_equal(left[k], right[k]) for k in left
        )
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            _json_equal(a, b) for a, b in zip(left, right, strict=True)
        )
    return left == right
