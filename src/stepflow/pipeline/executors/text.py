"""Text processing step executor."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from stepflow.pipeline.constants import FORMATTED_TEXT_BANNER
from stepflow.pipeline.definition import PipelineStep
from stepflow.pipeline.executors.base import (
    StepContext,
    StepOutcome,
    config_bool,
    config_str,
)

logger = structlog.get_logger()

MISSING_CONTENT = "Missing 'content' field"

_LINE_ENDINGS = re.compile(r"\r\n?")


def _content(data: Any) -> str | None:
    if isinstance(data, dict):
        value = data.get("content")
        if isinstance(value, str):
            return value
    return None


class TextProcessingStepExecutor:
    """Executor for text processing steps.

    Operations (``config.operation``, default ``validate``):
        validate: Require a non-empty ``content`` string.
        cleanup: Collapse whitespace and normalize line endings.
        format: Wrap the content for a given ``output_type``.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,  # noqa: ARG002
    ) -> StepOutcome:
        operation = config_str(step, "operation", "validate")
        logger.debug("Text processing", step_id=step.id, operation=operation)

        handlers = {
            "validate": self._validate,
            "cleanup": self._cleanup,
            "format": self._format,
        }
        handler = handlers.get(operation)
        if handler is None:
            return StepOutcome.failed(f"Unknown text processing operation: {operation}")

        return StepOutcome.from_output(handler(step, data))

    def _validate(self, step: PipelineStep, data: Any) -> dict[str, Any]:  # noqa: ARG002
        text = _content(data)
        if text is None:
            return {"valid": False, "error": MISSING_CONTENT}
        if not text:
            return {"valid": False, "error": "Content cannot be empty"}
        return {
            "valid": True,
            "content": text,
            "length": len(text),
            "word_count": len(text.split()),
        }

    def _cleanup(self, step: PipelineStep, data: Any) -> dict[str, Any]:
        text = _content(data)
        if text is None:
            return {"error": MISSING_CONTENT}

        cleaned = text
        if config_bool(step, "remove_extra_whitespace", True):
            cleaned = " ".join(cleaned.split())
        if config_bool(step, "normalize_line_endings", True):
            cleaned = _LINE_ENDINGS.sub("\n", cleaned)

        return {
            "content": cleaned,
            "original_length": len(text),
            "cleaned_length": len(cleaned),
            "removed_chars": len(text) - len(cleaned),
        }

    def _format(self, step: PipelineStep, data: Any) -> dict[str, Any]:
        output_type = config_str(step, "output_type", "plain")
        text = _content(data)
        if text is None:
            return {"error": MISSING_CONTENT}

        if output_type == "formatted_text":
            return {
                "content": f"{FORMATTED_TEXT_BANNER}{text}",
                "format_type": output_type,
            }
        if output_type == "json":
            return {
                "content": text,
                "format_type": output_type,
                "wrapped": json.dumps({"text": text}, ensure_ascii=False),
            }
        return {"content": text, "format_type": output_type}
