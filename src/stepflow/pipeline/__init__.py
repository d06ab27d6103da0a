"""Pipeline engine: definitions, registry, step executors and runner."""

from stepflow.pipeline.clock import Clock, InstantClock, SystemClock
from stepflow.pipeline.definition import (
    Pipeline,
    PipelineExecution,
    PipelineStatus,
    PipelineStep,
    StepResult,
    StepType,
)
from stepflow.pipeline.registry import PipelineRegistry
from stepflow.pipeline.runner import PipelineRunner, run_pipeline

__all__ = [
    "Clock",
    "InstantClock",
    "SystemClock",
    "Pipeline",
    "PipelineExecution",
    "PipelineStatus",
    "PipelineStep",
    "StepResult",
    "StepType",
    "PipelineRegistry",
    "PipelineRunner",
    "run_pipeline",
]
