"""Pytest fixtures for stepflow tests."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
SRC_DIR = TESTS_DIR.parent / "src"
for path in (SRC_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import pytest

from stepflow.config import EngineConfig
from stepflow.pipeline.clock import InstantClock
from stepflow.pipeline.definition import Pipeline, PipelineStatus, PipelineStep
from stepflow.pipeline.executors.base import StepContext
from stepflow.pipeline.registry import PipelineRegistry
from stepflow.pipeline.runner import PipelineRunner


@pytest.fixture
def engine_config() -> EngineConfig:
    """Engine config with samples disabled and default latencies.

    Custom steps may import from the test helpers module.
    """
    return EngineConfig(load_samples=False, allowed_callable_prefixes=["pipeline_helpers"])


@pytest.fixture
def clock() -> InstantClock:
    """Clock that records delays instead of sleeping."""
    return InstantClock()


@pytest.fixture
def step_ctx(engine_config: EngineConfig, clock: InstantClock) -> StepContext:
    """Step context for calling executors directly."""
    return StepContext(config=engine_config, clock=clock)


@pytest.fixture
def registry() -> PipelineRegistry:
    """Empty pipeline registry."""
    return PipelineRegistry()


@pytest.fixture
def runner(
    registry: PipelineRegistry,
    engine_config: EngineConfig,
    clock: InstantClock,
) -> Iterator[PipelineRunner]:
    """Runner over the registry fixture that never really sleeps."""
    runner = PipelineRunner(registry, config=engine_config, clock=clock)
    yield runner
    runner.shutdown()


@pytest.fixture
def add_pipeline(registry: PipelineRegistry) -> Callable[..., Pipeline]:
    """Register a ready pipeline made of the given steps."""

    def _add(
        *steps: PipelineStep,
        pipeline_id: str = "test-pipeline",
        status: PipelineStatus = PipelineStatus.READY,
    ) -> Pipeline:
        return registry.create_pipeline(
            Pipeline(id=pipeline_id, name="Test Pipeline", steps=list(steps), status=status)
        )

    return _add
