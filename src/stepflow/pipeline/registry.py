"""Registry for pipeline definitions and execution history."""

from __future__ import annotations

import math
import threading
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from stepflow.exceptions import NotFoundError, StepflowError, ValidationError
from stepflow.pipeline.constants import (
    DATA_TRANSFORM_PIPELINE_ID,
    MAX_STEPS_PER_PIPELINE,
    TEXT_PROCESSOR_PIPELINE_ID,
)
from stepflow.pipeline.definition import (
    Pipeline,
    PipelineExecution,
    PipelineStatus,
    PipelineStep,
    StepType,
    utc_now,
)

if TYPE_CHECKING:
    from stepflow.config import EngineConfig

logger = structlog.get_logger()


def _coerce(definition: Pipeline | dict[str, Any], pipeline_id: str = "") -> Pipeline:
    if isinstance(definition, Pipeline):
        return definition.model_copy(deep=True)
    try:
        return Pipeline.model_validate(definition)
    except PydanticValidationError as e:
        errors = e.errors()
        field = ".".join(str(p) for p in errors[0]["loc"]) if errors else ""
        msg = f"Invalid pipeline definition: {e}"
        raise ValidationError(msg, field=field, pipeline_id=pipeline_id) from e


def validate_pipeline(pipeline: Pipeline) -> None:
    """Check a pipeline definition is runnable.

    Raises:
        ValidationError: If the name is empty, there are no steps, or a step
            has an empty name, a duplicate id or a timeout that is not a
            finite positive number.
    """
    if not pipeline.name.strip():
        msg = "Pipeline name cannot be empty"
        raise ValidationError(msg, field="name", pipeline_id=pipeline.id)

    if not pipeline.steps:
        msg = "Pipeline must have at least one step"
        raise ValidationError(msg, field="steps", pipeline_id=pipeline.id)

    if len(pipeline.steps) > MAX_STEPS_PER_PIPELINE:
        msg = f"Pipeline cannot have more than {MAX_STEPS_PER_PIPELINE} steps"
        raise ValidationError(msg, field="steps", pipeline_id=pipeline.id)

    seen: set[str] = set()
    for i, step in enumerate(pipeline.steps, 1):
        if not step.name.strip():
            msg = f"Step {i} cannot have empty name"
            raise ValidationError(msg, field=f"steps.{i - 1}.name", pipeline_id=pipeline.id)
        if not math.isfinite(step.timeout_seconds) or step.timeout_seconds <= 0:
            msg = f"Step {i} must have a finite positive timeout"
            raise ValidationError(
                msg, field=f"steps.{i - 1}.timeout_seconds", pipeline_id=pipeline.id
            )
        if step.id in seen:
            msg = f"Duplicate step id: {step.id}"
            raise ValidationError(msg, field=f"steps.{i - 1}.id", pipeline_id=pipeline.id)
        seen.add(step.id)


class PipelineRegistry:
    """In-process store of pipeline definitions and executions.

    The pipeline map and the execution map are guarded by separate locks.
    Every read returns a copy, so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._pipelines: dict[str, Pipeline] = {}
        self._executions: dict[str, PipelineExecution] = {}
        self._pipelines_lock = threading.Lock()
        self._executions_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def create_pipeline(self, definition: Pipeline | dict[str, Any]) -> Pipeline:
        """Validate and store a new pipeline.

        Args:
            definition: Pipeline model or its JSON-compatible mapping.

        Returns:
            Copy of the stored pipeline.

        Raises:
            ValidationError: If the definition is malformed or the id is taken.
        """
        pipeline = _coerce(definition)
        validate_pipeline(pipeline)

        with self._pipelines_lock:
            if pipeline.id in self._pipelines:
                msg = f"Pipeline '{pipeline.id}' already exists"
                raise ValidationError(msg, field="id", pipeline_id=pipeline.id)
            self._pipelines[pipeline.id] = pipeline
            stored = pipeline.model_copy(deep=True)

        logger.info("Created pipeline", pipeline_id=pipeline.id, steps=len(pipeline.steps))
        return stored

    def list_pipelines(self) -> list[Pipeline]:
        """Snapshot of all pipelines."""
        with self._pipelines_lock:
            return [p.model_copy(deep=True) for p in self._pipelines.values()]

    def get_pipeline(self, pipeline_id: str) -> Pipeline | None:
        """Get a copy of a pipeline, or None if unknown."""
        with self._pipelines_lock:
            pipeline = self._pipelines.get(pipeline_id)
            return pipeline.model_copy(deep=True) if pipeline else None

    def exists(self, pipeline_id: str) -> bool:
        """Check if a pipeline exists."""
        with self._pipelines_lock:
            return pipeline_id in self._pipelines

    def update_pipeline(
        self,
        pipeline_id: str,
        definition: Pipeline | dict[str, Any],
    ) -> Pipeline:
        """Replace a pipeline's definition, keeping its id.

        A mapping may be partial; keys it omits keep their stored values.

        Returns:
            Copy of the updated pipeline.

        Raises:
            NotFoundError: If the pipeline is unknown.
            ValidationError: If the new definition is malformed.
        """
        with self._pipelines_lock:
            existing = self._pipelines.get(pipeline_id)
            if existing is None:
                msg = f"Pipeline '{pipeline_id}' not found"
                raise NotFoundError(msg, kind="pipeline", identifier=pipeline_id)

            if isinstance(definition, dict):
                merged = existing.model_dump(mode="json") | definition
                pipeline = _coerce(merged, pipeline_id)
            else:
                pipeline = _coerce(definition, pipeline_id)

            pipeline.id = pipeline_id
            pipeline.created_at = existing.created_at
            pipeline.updated_at = utc_now()
            validate_pipeline(pipeline)

            self._pipelines[pipeline_id] = pipeline
            stored = pipeline.model_copy(deep=True)

        logger.info("Updated pipeline", pipeline_id=pipeline_id)
        return stored

    def set_status(self, pipeline_id: str, status: PipelineStatus) -> Pipeline:
        """Move a pipeline to another lifecycle status.

        Raises:
            NotFoundError: If the pipeline is unknown.
        """
        with self._pipelines_lock:
            pipeline = self._pipelines.get(pipeline_id)
            if pipeline is None:
                msg = f"Pipeline '{pipeline_id}' not found"
                raise NotFoundError(msg, kind="pipeline", identifier=pipeline_id)
            pipeline.status = status
            pipeline.updated_at = utc_now()
            stored = pipeline.model_copy(deep=True)

        logger.info("Pipeline status changed", pipeline_id=pipeline_id, status=status.value)
        return stored

    def delete_pipeline(self, pipeline_id: str) -> Pipeline | None:
        """Remove a pipeline.

        Past executions of the pipeline are kept.

        Returns:
            The removed pipeline, or None if unknown.
        """
        with self._pipelines_lock:
            removed = self._pipelines.pop(pipeline_id, None)

        if removed is not None:
            logger.info("Deleted pipeline", pipeline_id=pipeline_id)
        return removed

    # ------------------------------------------------------------------
    # Executions
    # ------------------------------------------------------------------

    def record_execution(self, execution: PipelineExecution) -> PipelineExecution:
        """Insert or update an execution record.

        Returns:
            Copy of the stored execution.

        Raises:
            StepflowError: If the stored record is already terminal.
        """
        with self._executions_lock:
            existing = self._executions.get(execution.id)
            if existing is not None and existing.is_terminal:
                msg = f"Execution '{execution.id}' is already {existing.status.value}"
                raise StepflowError(msg)
            stored = execution.model_copy(deep=True)
            self._executions[execution.id] = stored
            return stored.model_copy(deep=True)

    def get_execution(self, execution_id: str) -> PipelineExecution | None:
        """Get a copy of an execution, or None if unknown."""
        with self._executions_lock:
            execution = self._executions.get(execution_id)
            return execution.model_copy(deep=True) if execution else None

    def list_executions(self, pipeline_id: str | None = None) -> list[PipelineExecution]:
        """List executions, oldest first, optionally for one pipeline."""
        with self._executions_lock:
            executions = [
                e.model_copy(deep=True)
                for e in self._executions.values()
                if pipeline_id is None or e.pipeline_id == pipeline_id
            ]
        return sorted(executions, key=lambda e: e.started_at)

    def execution_statistics(self) -> dict[str, Any]:
        """Counts of executions by outcome.

        Returns:
            Mapping with total_executions, successful, failed, cancelled,
            running and success_rate (percent of all executions).
        """
        with self._executions_lock:
            statuses = [e.status for e in self._executions.values()]

        total = len(statuses)
        successful = statuses.count(PipelineStatus.COMPLETED)
        return {
            "total_executions": total,
            "successful": successful,
            "failed": statuses.count(PipelineStatus.FAILED),
            "cancelled": statuses.count(PipelineStatus.CANCELLED),
            "running": statuses.count(PipelineStatus.RUNNING),
            "success_rate": (successful / total * 100.0) if total else 0.0,
        }

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def load_samples(self) -> None:
        """Register the sample pipelines, replacing any with the same id."""
        with self._pipelines_lock:
            for pipeline in (
                self._create_text_processor_pipeline(),
                self._create_data_transform_pipeline(),
            ):
                self._pipelines[pipeline.id] = pipeline

    def _create_text_processor_pipeline(self) -> Pipeline:
        """Validate, clean up and format a text document."""
        return Pipeline(
            id=TEXT_PROCESSOR_PIPELINE_ID,
            name="Text Processor",
            description="Processes text input and applies various transformations",
            status=PipelineStatus.READY,
            metadata={"category": "text-processing", "version": "1.0"},
            steps=[
                PipelineStep(
                    id="step-1",
                    name="Input Validation",
                    step_type=StepType.TEXT_PROCESSING,
                    config={"operation": "validate", "required_fields": ["content"]},
                    timeout_seconds=30,
                ),
                PipelineStep(
                    id="step-2",
                    name="Text Cleanup",
                    step_type=StepType.TEXT_PROCESSING,
                    config={
                        "operation": "cleanup",
                        "remove_extra_whitespace": True,
                        "normalize_line_endings": True,
                    },
                    timeout_seconds=60,
                ),
                PipelineStep(
                    id="step-3",
                    name="Format Output",
                    step_type=StepType.TEXT_PROCESSING,
                    config={"operation": "format", "output_type": "formatted_text"},
                    timeout_seconds=30,
                ),
            ],
        )

    def _create_data_transform_pipeline(self) -> Pipeline:
        """Parse, map and serialize a JSON document."""
        return Pipeline(
            id=DATA_TRANSFORM_PIPELINE_ID,
            name="Data Transformer",
            description="Transforms data between different formats",
            status=PipelineStatus.READY,
            metadata={"category": "data-transformation", "version": "1.0"},
            steps=[
                PipelineStep(
                    id="step-1",
                    name="Parse Input",
                    step_type=StepType.DATA_TRANSFORM,
                    config={"operation": "parse", "input_format": "json"},
                    timeout_seconds=30,
                ),
                PipelineStep(
                    id="step-2",
                    name="Transform Data",
                    step_type=StepType.DATA_TRANSFORM,
                    config={
                        "operation": "map",
                        "transformations": [
                            {"field": "parsed_data/value", "operation": "multiply", "factor": 2},
                            {"field": "parsed_data/status", "operation": "uppercase"},
                        ],
                    },
                    timeout_seconds=60,
                ),
                PipelineStep(
                    id="step-3",
                    name="Serialize Output",
                    step_type=StepType.DATA_TRANSFORM,
                    config={"operation": "serialize", "output_format": "json"},
                    timeout_seconds=30,
                ),
            ],
        )

    @classmethod
    def load(cls, config: EngineConfig | None = None) -> PipelineRegistry:
        """Create a registry, seeded with samples unless disabled.

        Args:
            config: Engine configuration; defaults are read from the environment.

        Returns:
            Loaded PipelineRegistry.
        """
        if config is None:
            from stepflow.config import EngineConfig

            config = EngineConfig()

        registry = cls()
        if config.load_samples:
            registry.load_samples()
        return registry
