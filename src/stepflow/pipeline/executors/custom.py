"""Custom step executor for extension callables."""

from __future__ import annotations

import copy
import importlib
from collections.abc import Callable
from typing import Any

import structlog

from stepflow.exceptions import StepFailure
from stepflow.pipeline.definition import PipelineStep
from stepflow.pipeline.executors.base import StepContext, StepOutcome

logger = structlog.get_logger()

StepHandler = Callable[[PipelineStep, Any, StepContext], Any]


class CustomStepExecutor:
    """Executor for custom steps.

    Without a ``callable_path`` the step echoes its declared type and
    configuration. With one (``module.submodule:function``) the callable is
    imported and invoked as ``func(step, data, ctx)``. The module must fall
    under one of ``EngineConfig.allowed_callable_prefixes``.
    """

    def execute(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,
    ) -> StepOutcome:
        log = logger.bind(step_id=step.id, custom_type=step.custom_type)

        callable_path = step.config.get("callable_path")
        if not callable_path:
            log.debug("Echoing custom step")
            return StepOutcome.completed({
                "custom_step": {
                    "step_type": step.custom_type or step.step_type.value,
                    "config": copy.deepcopy(step.config),
                    "input": copy.deepcopy(data),
                    "output": "Custom step execution completed",
                }
            })

        if not isinstance(callable_path, str):
            return StepOutcome.failed(f"Invalid callable_path for custom step: {step.id}")

        log.info("Executing custom callable", callable_path=callable_path)
        try:
            module_path, func_name = self._split_path(callable_path)
        except ValueError as e:
            log.error("Failed to import custom callable", error=str(e))
            return StepOutcome.failed(f"Cannot import '{callable_path}': {e}")

        if not ctx.config.allows_callable(module_path):
            log.warning("Custom callable not allowed", module=module_path)
            return StepOutcome.failed(f"callable_path '{callable_path}' is not allowed")

        try:
            func = self._import_callable(module_path, func_name)
        except (ImportError, AttributeError, ValueError) as e:
            log.error("Failed to import custom callable", error=str(e))
            return StepOutcome.failed(f"Cannot import '{callable_path}': {e}")

        try:
            result = func(step, copy.deepcopy(data), ctx)
        except StepFailure as e:
            log.info("Custom callable reported failure", error=str(e))
            return StepOutcome.failed(str(e), output=e.output)

        if isinstance(result, StepOutcome):
            return result
        return StepOutcome.from_output(result)

    @staticmethod
    def _split_path(path: str) -> tuple[str, str]:
        """Split 'module.submodule:function' into module and attribute."""
        if ":" in path:
            module_path, func_name = path.rsplit(":", 1)
        elif "." in path:
            module_path, func_name = path.rsplit(".", 1)
        else:
            msg = f"Not a dotted path: {path}"
            raise ValueError(msg)
        if not module_path or not func_name:
            msg = f"Not a dotted path: {path}"
            raise ValueError(msg)
        return module_path, func_name

    def _import_callable(self, module_path: str, func_name: str) -> StepHandler:
        """Import a callable from a module.

        Raises:
            ImportError: If import fails.
            AttributeError: If function not found.
            ValueError: If the attribute is not callable.
        """
        module = importlib.import_module(module_path)
        func = getattr(module, func_name)
        if not callable(func):
            msg = f"{module_path}:{func_name} is not callable"
            raise ValueError(msg)
        return func
