"""Step executors for pipeline execution."""

from stepflow.pipeline.executors.api_call import ApiCallStepExecutor
from stepflow.pipeline.executors.base import StepContext, StepExecutor, StepOutcome
from stepflow.pipeline.executors.condition import ConditionStepExecutor
from stepflow.pipeline.executors.custom import CustomStepExecutor
from stepflow.pipeline.executors.loop import LoopStepExecutor
from stepflow.pipeline.executors.text import TextProcessingStepExecutor
from stepflow.pipeline.executors.transform import DataTransformStepExecutor

__all__ = [
    "StepContext",
    "StepExecutor",
    "StepOutcome",
    "TextProcessingStepExecutor",
    "DataTransformStepExecutor",
    "ApiCallStepExecutor",
    "ConditionStepExecutor",
    "LoopStepExecutor",
    "CustomStepExecutor",
]
