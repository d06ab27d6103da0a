"""Data transform step executor."""

from __future__ import annotations

import copy
import json
import math
from typing import Any

import structlog

from stepflow.pipeline import pointer
from stepflow.pipeline.definition import PipelineStep
from stepflow.pipeline.executors.base import StepContext, StepOutcome, config_str

logger = structlog.get_logger()


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _finite(value: int | float) -> int | float:
    # JSON has no representation for inf/nan
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return value


def _multiply(current: Any, rule: dict[str, Any]) -> Any:
    factor = rule.get("factor")
    if _is_number(current) and _is_number(factor):
        return _finite(current * factor)
    return current


def _add(current: Any, rule: dict[str, Any]) -> Any:
    value = rule.get("value")
    if _is_number(current) and _is_number(value):
        return _finite(current + value)
    if isinstance(current, str) and isinstance(value, str):
        return current + value
    return current


def _uppercase(current: Any, rule: dict[str, Any]) -> Any:  # noqa: ARG001
    return current.upper() if isinstance(current, str) else current


def _lowercase(current: Any, rule: dict[str, Any]) -> Any:  # noqa: ARG001
    return current.lower() if isinstance(current, str) else current


FIELD_OPERATIONS = {
    "multiply": _multiply,
    "add": _add,
    "uppercase": _uppercase,
    "lowercase": _lowercase,
}


def apply_transformations(data: Any, transformations: list[Any]) -> Any:
    """Apply field transformations to a deep copy of ``data``.

    Transformations whose field is missing, or whose operation is unknown,
    are skipped. ``data`` itself is never modified.

    Args:
        data: Input document.
        transformations: ``{field, operation, ...}`` mappings, applied in order.

    Returns:
        The transformed copy.
    """
    result = copy.deepcopy(data)
    for rule in transformations:
        if not isinstance(rule, dict):
            continue
        field = rule.get("field")
        operation = FIELD_OPERATIONS.get(rule.get("operation") or "")
        if not isinstance(field, str) or not field or operation is None:
            continue

        path = pointer.to_pointer(field)
        if not pointer.exists(result, path):
            continue
        pointer.assign(result, path, operation(pointer.resolve(result, path), rule))
    return result


def _csv_rows(rows: list[Any]) -> dict[str, Any]:
    first = rows[0] if rows else None
    headers = list(first.keys()) if isinstance(first, dict) else []

    lines = []
    for row in rows:
        if isinstance(row, dict):
            cells = [row.get(h) for h in headers]
            lines.append(",".join(c if isinstance(c, str) else "" for c in cells))
        else:
            lines.append("")

    return {
        "csv_content": "\n".join(lines),
        "headers": headers,
        "row_count": len(rows),
    }


class DataTransformStepExecutor:
    """Executor for data transform steps.

    Operations (``config.operation``, default ``parse``):
        parse: Check the input is a JSON object or array.
        serialize: Emit the input as JSON or CSV.
        map: Apply field-level transformations to a copy of the input.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,  # noqa: ARG002
    ) -> StepOutcome:
        operation = config_str(step, "operation", "parse")
        logger.debug("Data transform", step_id=step.id, operation=operation)

        handlers = {
            "parse": self._parse,
            "serialize": self._serialize,
            "map": self._map,
        }
        handler = handlers.get(operation)
        if handler is None:
            return StepOutcome.failed(f"Unknown data transformation operation: {operation}")

        return StepOutcome.from_output(handler(step, data))

    def _parse(self, step: PipelineStep, data: Any) -> dict[str, Any]:
        input_format = config_str(step, "input_format", "json")
        if input_format != "json":
            return {"error": f"Unsupported input format: {input_format}"}
        if not isinstance(data, dict | list):
            return {"error": "Invalid JSON input", "input_type": "not_object_or_array"}
        return {
            "parsed_data": copy.deepcopy(data),
            "format": "json",
            "validation": "passed",
        }

    def _serialize(self, step: PipelineStep, data: Any) -> dict[str, Any]:
        output_format = config_str(step, "output_format", "json")
        if output_format == "json":
            return {"serialized_data": copy.deepcopy(data), "format": "json"}
        if output_format != "csv":
            return {"error": f"Unsupported output format: {output_format}"}

        rows = data.get("data") if isinstance(data, dict) and "data" in data else data
        if isinstance(rows, list):
            return _csv_rows(rows)
        return {"csv_content": json.dumps(rows), "format": "csv"}

    def _map(self, step: PipelineStep, data: Any) -> dict[str, Any]:
        transformations = step.config.get("transformations")
        if not isinstance(transformations, list):
            transformations = []

        return {
            "transformed_data": apply_transformations(data, transformations),
            "transformations_applied": len(transformations),
            "original_data": copy.deepcopy(data),
        }
