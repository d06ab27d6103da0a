"""Pipeline runner - main execution engine."""

from __future__ import annotations

import copy
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

import structlog

from stepflow.config import EngineConfig
from stepflow.exceptions import NotFoundError, NotReadyError, StepFailure, StepTimeoutError
from stepflow.pipeline.clock import Clock, SystemClock
from stepflow.pipeline.definition import (
    Pipeline,
    PipelineExecution,
    PipelineStatus,
    PipelineStep,
    StepResult,
    StepType,
)
from stepflow.pipeline.executors.api_call import ApiCallStepExecutor
from stepflow.pipeline.executors.base import StepContext, StepExecutor, StepOutcome
from stepflow.pipeline.executors.condition import ConditionStepExecutor
from stepflow.pipeline.executors.custom import CustomStepExecutor
from stepflow.pipeline.executors.loop import LoopStepExecutor
from stepflow.pipeline.executors.text import TextProcessingStepExecutor
from stepflow.pipeline.executors.transform import DataTransformStepExecutor

if TYPE_CHECKING:
    from stepflow.pipeline.registry import PipelineRegistry

logger = structlog.get_logger()

# How often a waiting runner checks for cancellation (seconds)
CANCEL_POLL_INTERVAL: float = 0.05

CANCELLED_MESSAGE = "Execution cancelled"


class _StepCall:
    """A step dispatched on its own thread so its deadline can be enforced."""

    def __init__(self, target: Any, *args: Any) -> None:
        self.outcome: StepOutcome | None = None
        self.error: BaseException | None = None
        self.done = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(target, *args), daemon=True, name="stepflow-step"
        )

    def start(self) -> None:
        self._thread.start()

    def _run(self, target: Any, *args: Any) -> None:
        try:
            self.outcome = target(*args)
        except BaseException as e:  # noqa: BLE001
            self.error = e
        finally:
            self.done.set()


class PipelineRunner:
    """Main pipeline execution engine.

    Runs each step of a ready pipeline in sequence, threading the output of
    one step into the next, and records the execution in the registry.
    Executions of different pipelines may run concurrently.
    """

    def __init__(
        self,
        registry: PipelineRegistry,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        executors: dict[StepType, StepExecutor] | None = None,
    ):
        """Initialize pipeline runner.

        Args:
            registry: Store of pipelines and executions.
            config: Engine configuration.
            clock: Time and latency source (real time by default).
            executors: Override step executors by step type.
        """
        self.registry = registry
        self.config = config or EngineConfig()
        self.clock = clock or SystemClock()

        # Step executors
        self._executors: dict[StepType, StepExecutor] = {
            StepType.TEXT_PROCESSING: TextProcessingStepExecutor(),
            StepType.DATA_TRANSFORM: DataTransformStepExecutor(),
            StepType.API_CALL: ApiCallStepExecutor(),
            StepType.CONDITION: ConditionStepExecutor(),
            StepType.LOOP: LoopStepExecutor(),
            StepType.CUSTOM: CustomStepExecutor(),
        }
        if executors:
            self._executors.update(executors)

        self._pool: ThreadPoolExecutor | None = None
        self._cancel_events: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def execute(
        self,
        pipeline_id: str,
        input_data: Any,
        *,
        cancel_event: threading.Event | None = None,
    ) -> PipelineExecution:
        """Run a pipeline to completion.

        Args:
            pipeline_id: Pipeline identifier.
            input_data: Input JSON document for the first step.
            cancel_event: Set from another thread to cancel the run.

        Returns:
            The stored PipelineExecution.

        Raises:
            NotFoundError: If the pipeline is unknown.
            NotReadyError: If the pipeline is not ready.
        """
        pipeline = self._ready_snapshot(pipeline_id)
        execution = self._start_execution(pipeline, input_data)
        cancel_event = cancel_event or threading.Event()

        with self._lock:
            self._cancel_events[execution.id] = cancel_event
        try:
            return self._run(pipeline, execution, cancel_event)
        finally:
            with self._lock:
                self._cancel_events.pop(execution.id, None)

    def submit(self, pipeline_id: str, input_data: Any) -> str:
        """Start a pipeline in the background.

        The running execution is recorded before this returns, so it can be
        polled with ``registry.get_execution``.

        Returns:
            The execution id.

        Raises:
            NotFoundError: If the pipeline is unknown.
            NotReadyError: If the pipeline is not ready.
        """
        pipeline = self._ready_snapshot(pipeline_id)
        execution = self._start_execution(pipeline, input_data)
        cancel_event = threading.Event()

        with self._lock:
            self._cancel_events[execution.id] = cancel_event
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.config.max_workers,
                    thread_name_prefix="stepflow-run",
                )
            future = self._pool.submit(self._run, pipeline, execution, cancel_event)

        future.add_done_callback(lambda f: self._finish_submitted(execution.id, f))
        return execution.id

    def cancel(self, execution_id: str) -> bool:
        """Request cancellation of a running execution.

        Returns:
            True if the execution was running and has been signalled.
        """
        with self._lock:
            event = self._cancel_events.get(execution_id)
        if event is None:
            return False
        event.set()
        logger.info("Cancellation requested", execution_id=execution_id)
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Cancel running executions and stop the background pool."""
        with self._lock:
            events = list(self._cancel_events.values())
            pool, self._pool = self._pool, None
        for event in events:
            event.set()
        if pool is not None:
            pool.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def _ready_snapshot(self, pipeline_id: str) -> Pipeline:
        pipeline = self.registry.get_pipeline(pipeline_id)
        if pipeline is None:
            msg = f"Pipeline '{pipeline_id}' not found"
            raise NotFoundError(msg, kind="pipeline", identifier=pipeline_id)
        if pipeline.status != PipelineStatus.READY:
            msg = f"Pipeline '{pipeline_id}' is not ready for execution (status: {pipeline.status.value})"
            raise NotReadyError(msg, pipeline_id=pipeline_id, status=pipeline.status.value)
        return pipeline

    def _start_execution(self, pipeline: Pipeline, input_data: Any) -> PipelineExecution:
        execution = PipelineExecution(
            pipeline_id=pipeline.id,
            status=PipelineStatus.RUNNING,
            input=copy.deepcopy(input_data),
            started_at=self.clock.now(),
        )
        self.registry.record_execution(execution)
        return execution

    def _run(
        self,
        pipeline: Pipeline,
        execution: PipelineExecution,
        cancel_event: threading.Event,
    ) -> PipelineExecution:
        log = logger.bind(
            pipeline_id=pipeline.id,
            execution_id=execution.id,
            step_count=len(pipeline.steps),
        )
        log.info("Starting pipeline execution")

        try:
            self._run_steps(pipeline, execution, cancel_event, log)
        except Exception as e:
            log.exception("Pipeline execution crashed", error=str(e))
            execution.status = PipelineStatus.FAILED
            execution.error_message = str(e) or type(e).__name__

        if execution.status == PipelineStatus.RUNNING:
            execution.status = PipelineStatus.COMPLETED
        elif execution.status == PipelineStatus.CANCELLED:
            execution.error_message = CANCELLED_MESSAGE

        total_ms = sum(r.execution_time_ms for r in execution.step_results)
        execution.completed_at = self.clock.now()
        execution.execution_time_ms = total_ms

        stored = self.registry.record_execution(execution)

        log.info(
            "Pipeline execution finished",
            status=execution.status.value,
            steps_run=len(execution.step_results),
            duration_ms=total_ms,
        )
        return stored

    def _run_steps(
        self,
        pipeline: Pipeline,
        execution: PipelineExecution,
        cancel_event: threading.Event,
        log: Any,
    ) -> None:
        """Run steps in order, appending results until one does not complete."""
        current_data = copy.deepcopy(execution.input)

        for step in pipeline.steps:
            if cancel_event.is_set():
                execution.status = PipelineStatus.CANCELLED
                break

            step_log = log.bind(step_id=step.id, step_type=step.step_type.value)
            step_log.info("Executing step")

            started_at = self.clock.now()
            step_start = self.clock.monotonic()
            ctx = StepContext(
                config=self.config,
                clock=self.clock,
                cancel_event=threading.Event(),
                execution_id=execution.id,
            )

            try:
                outcome = self._run_with_deadline(step, current_data, ctx, cancel_event)
            except StepTimeoutError as e:
                step_log.warning("Step timed out", timeout_seconds=e.timeout_seconds)
                outcome = StepOutcome.failed(
                    str(e),
                    output={"error": str(e), "timeout_seconds": e.timeout_seconds},
                )
            if outcome.status == PipelineStatus.FAILED and not outcome.error:
                outcome.error = "Step failed"

            step_ms = int((self.clock.monotonic() - step_start) * 1000)

            execution.step_results.append(
                StepResult(
                    step_id=step.id,
                    step_name=step.name,
                    status=outcome.status,
                    input=copy.deepcopy(current_data),
                    output=copy.deepcopy(outcome.output),
                    started_at=started_at,
                    completed_at=self.clock.now(),
                    error_message=outcome.error,
                    execution_time_ms=step_ms,
                )
            )
            current_data = outcome.output
            execution.output = copy.deepcopy(current_data)

            if outcome.status == PipelineStatus.FAILED:
                execution.status = PipelineStatus.FAILED
                execution.error_message = outcome.error
                step_log.error("Step failed", error=outcome.error, duration_ms=step_ms)
                break
            if outcome.status == PipelineStatus.CANCELLED:
                execution.status = PipelineStatus.CANCELLED
                step_log.info("Step cancelled", duration_ms=step_ms)
                break

            step_log.info("Step completed", duration_ms=step_ms)

    def _run_with_deadline(
        self,
        step: PipelineStep,
        data: Any,
        ctx: StepContext,
        cancel_event: threading.Event,
    ) -> StepOutcome:
        """Dispatch a step, enforcing its timeout and watching for cancellation.

        Raises:
            StepTimeoutError: If the step does not finish within its timeout.
        """
        if not self.config.enforce_timeouts:
            ctx.cancel_event = cancel_event
            return self._dispatch(step, data, ctx)

        call = _StepCall(self._dispatch, step, data, ctx)
        call.start()

        deadline = time.monotonic() + step.timeout_seconds
        while not call.done.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                ctx.cancel_event.set()
                msg = f"Step '{step.name}' timed out after {step.timeout_seconds:g}s"
                raise StepTimeoutError(
                    msg, step_id=step.id, timeout_seconds=step.timeout_seconds
                )
            if cancel_event.is_set():
                ctx.cancel_event.set()
                return StepOutcome(status=PipelineStatus.CANCELLED, error=CANCELLED_MESSAGE)
            call.done.wait(min(remaining, CANCEL_POLL_INTERVAL))

        if isinstance(call.error, Exception):
            raise call.error
        if call.error is not None:
            # SystemExit and friends from a step thread must not stop the runner
            msg = f"Step '{step.name}' raised {type(call.error).__name__}"
            raise RuntimeError(msg) from call.error
        return call.outcome  # type: ignore[return-value]

    def _dispatch(self, step: PipelineStep, data: Any, ctx: StepContext) -> StepOutcome:
        """Apply the simulated step delay, then run the step's executor."""
        delay = self.config.step_delay(step.timeout_seconds)
        if not self.clock.sleep(delay, ctx.cancel_event):
            return StepOutcome(status=PipelineStatus.CANCELLED, error=CANCELLED_MESSAGE)

        executor = self._executors.get(step.step_type)
        if executor is None:
            return StepOutcome.failed(f"No executor for step type: {step.step_type.value}")

        try:
            return executor.execute(step, copy.deepcopy(data), ctx)
        except StepFailure as e:
            return StepOutcome.failed(str(e), output=e.output)
        except Exception as e:
            logger.error("Step execution error", step_id=step.id, error=str(e))
            return StepOutcome.failed(str(e) or type(e).__name__)

    def _finish_submitted(self, execution_id: str, future: Future) -> None:
        with self._lock:
            self._cancel_events.pop(execution_id, None)
        error = future.exception()
        if error is not None:
            logger.error("Background execution crashed", execution_id=execution_id, error=str(error))

    @classmethod
    def from_config(
        cls,
        config: EngineConfig | None = None,
        registry: PipelineRegistry | None = None,
        clock: Clock | None = None,
    ) -> PipelineRunner:
        """Create a runner, with a registry loaded from the same config.

        Returns:
            Configured PipelineRunner.
        """
        from stepflow.pipeline.registry import PipelineRegistry

        config = config or EngineConfig()
        if registry is None:
            registry = PipelineRegistry.load(config)
        return cls(registry=registry, config=config, clock=clock)


def run_pipeline(
    pipeline_id: str,
    input_data: Any,
    registry: PipelineRegistry | None = None,
    config: EngineConfig | None = None,
) -> PipelineExecution:
    """Convenience function to run a pipeline by ID.

    Raises:
        NotFoundError: If the pipeline is unknown.
        NotReadyError: If the pipeline is not ready.
    """
    runner = PipelineRunner.from_config(config=config, registry=registry)
    return runner.execute(pipeline_id, input_data)
