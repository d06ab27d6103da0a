"""Pipeline, step and execution models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from stepflow.pipeline.constants import DEFAULT_STEP_TIMEOUT


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(tz=UTC)


class StepType(str, Enum):
    """Kind of pipeline step."""

    TEXT_PROCESSING = "text_processing"
    DATA_TRANSFORM = "data_transform"
    API_CALL = "api_call"  # Simulated, never touches the network
    CONDITION = "condition"
    LOOP = "loop"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str) -> StepType:
        """Parse a step type, accepting camel case and unseparated spellings.

        ``TextProcessing``, ``textprocessing`` and ``text_processing`` all map
        to ``TEXT_PROCESSING``.
        """
        key = value.replace("_", "").replace("-", "").lower()
        for member in cls:
            if member.value.replace("_", "") == key:
                return member
        msg = f"Unknown step type: {value}"
        raise ValueError(msg)


class PipelineStatus(str, Enum):
    """Status of a pipeline, an execution or a single step result."""

    DRAFT = "draft"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible."""
        return self in (
            PipelineStatus.COMPLETED,
            PipelineStatus.FAILED,
            PipelineStatus.CANCELLED,
        )


class PipelineStep(BaseModel):
    """Definition of a single pipeline step.

    Attributes:
        id: Identifier, unique within its pipeline.
        name: Human-readable name.
        step_type: Which operator family runs this step.
        custom_type: Free-form tag for custom steps.
        config: Operator-specific configuration (arbitrary JSON).
        timeout_seconds: Deadline for the step.
    """

    id: str
    name: str
    step_type: StepType
    custom_type: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float = Field(default=DEFAULT_STEP_TIMEOUT, allow_inf_nan=False)

    @field_validator("step_type", mode="before")
    @classmethod
    def normalize_step_type(cls, v: Any) -> Any:
        """Accept the alternative step type spellings."""
        if isinstance(v, str) and not isinstance(v, StepType):
            return StepType.parse(v)
        return v

    @property
    def operation(self) -> str | None:
        """The ``operation`` selector in the step config, if any."""
        value = self.config.get("operation")
        return value if isinstance(value, str) else None


class Pipeline(BaseModel):
    """A named, ordered workflow of steps.

    Attributes:
        id: Unique identifier, stable once created.
        name: Human-readable name.
        description: Description of the pipeline purpose.
        steps: Steps in execution order.
        status: Lifecycle status; only ready pipelines can be executed.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
        metadata: Free-form annotations.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    description: str = ""
    steps: list[PipelineStep] = Field(default_factory=list)
    status: PipelineStatus = PipelineStatus.DRAFT
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def get_step(self, step_id: str) -> PipelineStep | None:
        """Get a step by ID."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> Pipeline:
        """Parse a pipeline from YAML content.

        Raises:
            ValueError: If the YAML is not a mapping or fails validation.
        """
        data = yaml.safe_load(yaml_content)
        if not isinstance(data, dict):
            msg = "Pipeline YAML must be a mapping"
            raise ValueError(msg)
        return cls.model_validate(data)


class StepResult(BaseModel):
    """Outcome of one step within one execution."""

    step_id: str
    step_name: str
    status: PipelineStatus
    input: Any = None
    output: Any = None
    started_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None
    execution_time_ms: int = 0


class PipelineExecution(BaseModel):
    """One run of a pipeline against one input.

    Attributes:
        id: Generated at execution start.
        pipeline_id: Back-reference to the executed pipeline.
        status: Running until one terminal state is reached.
        input: The caller's input document.
        output: Output of the last step that ran.
        started_at: When the execution began.
        completed_at: Set once terminal.
        error_message: First failing step's error, or the cancellation reason.
        step_results: One entry per step that ran, in order.
        execution_time_ms: Sum of per-step times, set once terminal.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    pipeline_id: str
    status: PipelineStatus = PipelineStatus.RUNNING
    input: Any = None
    output: Any = None
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    error_message: str | None = None
    step_results: list[StepResult] = Field(default_factory=list)
    execution_time_ms: int | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether the execution has finished."""
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")
