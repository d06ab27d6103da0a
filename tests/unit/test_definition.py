"""Unit tests for pipeline definition models."""

from __future__ import annotations

import pytest

from stepflow.pipeline.constants import DEFAULT_STEP_TIMEOUT
from stepflow.pipeline.definition import (
    Pipeline,
    PipelineExecution,
    PipelineStatus,
    PipelineStep,
    StepType,
)

# ============================================================================
# Enum Tests
# ============================================================================


class TestStepType:
    """Tests for StepType enum."""

    def test_all_types_exist(self):
        assert StepType.TEXT_PROCESSING.value == "text_processing"
        assert StepType.DATA_TRANSFORM.value == "data_transform"
        assert StepType.API_CALL.value == "api_call"
        assert StepType.CONDITION.value == "condition"
        assert StepType.LOOP.value == "loop"
        assert StepType.CUSTOM.value == "custom"

    @pytest.mark.parametrize(
        "raw",
        ["TextProcessing", "textprocessing", "text_processing", "text-processing"],
    )
    def test_parse_accepts_alternative_spellings(self, raw):
        assert StepType.parse(raw) is StepType.TEXT_PROCESSING

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown step type"):
            StepType.parse("teleport")


class TestPipelineStatus:
    """Tests for PipelineStatus enum."""

    def test_terminal_states(self):
        terminal = {s for s in PipelineStatus if s.is_terminal}
        assert terminal == {
            PipelineStatus.COMPLETED,
            PipelineStatus.FAILED,
            PipelineStatus.CANCELLED,
        }


# ============================================================================
# Model Tests
# ============================================================================


class TestPipelineStep:
    """Tests for PipelineStep model."""

    def test_defaults(self):
        step = PipelineStep(id="s1", name="Step", step_type=StepType.LOOP)
        assert step.config == {}
        assert step.custom_type is None
        assert step.timeout_seconds == DEFAULT_STEP_TIMEOUT
        assert step.operation is None

    def test_step_type_from_camel_case(self):
        step = PipelineStep.model_validate(
            {"id": "s1", "name": "Call", "step_type": "ApiCall", "config": {}}
        )
        assert step.step_type is StepType.API_CALL

    def test_operation_reads_config(self):
        step = PipelineStep(
            id="s1",
            name="Validate",
            step_type=StepType.TEXT_PROCESSING,
            config={"operation": "validate"},
        )
        assert step.operation == "validate"


class TestPipeline:
    """Tests for Pipeline model."""

    def test_defaults(self):
        pipeline = Pipeline(name="Example")
        assert pipeline.id
        assert pipeline.status == PipelineStatus.DRAFT
        assert pipeline.steps == []
        assert pipeline.metadata == {}

    def test_generated_ids_are_unique(self):
        assert Pipeline(name="a").id != Pipeline(name="b").id

    def test_get_step(self):
        pipeline = Pipeline(
            name="Example",
            steps=[
                PipelineStep(id="a", name="A", step_type=StepType.LOOP),
                PipelineStep(id="b", name="B", step_type=StepType.LOOP),
            ],
        )
        assert pipeline.get_step("b").name == "B"
        assert pipeline.get_step("missing") is None

    def test_to_dict_uses_wire_field_names(self):
        pipeline = Pipeline(
            id="p1",
            name="Example",
            steps=[PipelineStep(id="a", name="A", step_type=StepType.CONDITION)],
            metadata={"category": "demo"},
        )
        data = pipeline.to_dict()
        assert set(data) == {
            "id",
            "name",
            "description",
            "steps",
            "status",
            "created_at",
            "updated_at",
            "metadata",
        }
        assert data["status"] == "draft"
        assert data["steps"][0]["step_type"] == "condition"
        assert set(data["steps"][0]) == {
            "id",
            "name",
            "step_type",
            "custom_type",
            "config",
            "timeout_seconds",
        }

    def test_yaml_round_trip(self):
        pipeline = Pipeline(
            id="p1",
            name="Example",
            status=PipelineStatus.READY,
            steps=[
                PipelineStep(
                    id="a",
                    name="A",
                    step_type=StepType.DATA_TRANSFORM,
                    config={"operation": "map", "transformations": [{"field": "x"}]},
                )
            ],
        )
        loaded = Pipeline.from_yaml(pipeline.to_yaml())
        assert loaded == pipeline

    def test_from_yaml_rejects_non_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            Pipeline.from_yaml("- just\n- a list\n")


class TestPipelineExecution:
    """Tests for PipelineExecution model."""

    def test_new_execution_is_running(self):
        execution = PipelineExecution(pipeline_id="p1", input={"a": 1})
        assert execution.status == PipelineStatus.RUNNING
        assert not execution.is_terminal
        assert execution.completed_at is None
        assert execution.execution_time_ms is None
        assert execution.error_message is None
        assert execution.step_results == []

    def test_to_dict_field_names(self):
        data = PipelineExecution(pipeline_id="p1").to_dict()
        assert set(data) == {
            "id",
            "pipeline_id",
            "status",
            "input",
            "output",
            "started_at",
            "completed_at",
            "error_message",
            "step_results",
            "execution_time_ms",
        }
