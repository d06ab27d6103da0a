"""API route handlers for pipelines and executions."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel

from stepflow.exceptions import NotFoundError, NotReadyError, ValidationError
from stepflow.pipeline.definition import PipelineStatus
from stepflow.pipeline.registry import PipelineRegistry
from stepflow.pipeline.runner import PipelineRunner

router = APIRouter(tags=["api"])

logger = structlog.get_logger()


class StatusUpdateRequest(BaseModel):
    """Request to move a pipeline to another status."""

    status: PipelineStatus


class SubmitResponse(BaseModel):
    """Response for a run started in the background."""

    execution_id: str
    status: str = "running"
    message: str = "Execution started"


def _registry(request: Request) -> PipelineRegistry:
    return request.app.state.registry


def _runner(request: Request) -> PipelineRunner:
    return request.app.state.runner


def _pipeline_not_found(pipeline_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": "Pipeline not found", "pipeline_id": pipeline_id},
    )


# ----------------------------------------------------------------------
# Pipelines
# ----------------------------------------------------------------------


@router.get("/pipelines")
def list_pipelines(request: Request):
    """List all pipelines."""
    pipelines = _registry(request).list_pipelines()
    return {
        "pipelines": [p.to_dict() for p in pipelines],
        "total": len(pipelines),
    }


@router.post("/pipelines", status_code=201)
def create_pipeline(request: Request, payload: dict[str, Any] = Body(...)):  # noqa: B008
    """Create a pipeline from its JSON definition."""
    try:
        pipeline = _registry(request).create_pipeline(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"error": str(e), "field": e.field}) from e
    return pipeline.to_dict()


@router.get("/pipelines/{pipeline_id}")
def get_pipeline(request: Request, pipeline_id: str):
    """Get a pipeline definition."""
    pipeline = _registry(request).get_pipeline(pipeline_id)
    if pipeline is None:
        raise _pipeline_not_found(pipeline_id)
    return pipeline.to_dict()


@router.put("/pipelines/{pipeline_id}")
def update_pipeline(
    request: Request,
    pipeline_id: str,
    payload: dict[str, Any] = Body(...),  # noqa: B008
):
    """Update a pipeline definition; omitted keys keep their values."""
    try:
        pipeline = _registry(request).update_pipeline(pipeline_id, payload)
    except NotFoundError as e:
        raise _pipeline_not_found(pipeline_id) from e
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"error": str(e), "field": e.field}) from e
    return pipeline.to_dict()


@router.post("/pipelines/{pipeline_id}/status")
def set_pipeline_status(request: Request, pipeline_id: str, payload: StatusUpdateRequest):
    """Change a pipeline's lifecycle status (e.g. draft -> ready)."""
    try:
        pipeline = _registry(request).set_status(pipeline_id, payload.status)
    except NotFoundError as e:
        raise _pipeline_not_found(pipeline_id) from e
    return pipeline.to_dict()


@router.delete("/pipelines/{pipeline_id}")
def delete_pipeline(request: Request, pipeline_id: str):
    """Delete a pipeline. Its executions are kept."""
    removed = _registry(request).delete_pipeline(pipeline_id)
    if removed is None:
        raise _pipeline_not_found(pipeline_id)
    return {"status": "deleted", "pipeline": removed.to_dict()}


@router.post("/pipelines/{pipeline_id}/run")
def run_pipeline(
    request: Request,
    pipeline_id: str,
    payload: Any = Body(default=None),  # noqa: B008
    wait: bool = True,
):
    """Run a pipeline against the request body.

    With ``wait=false`` the run is started in the background and the
    execution id is returned for polling.
    """
    runner = _runner(request)
    try:
        if not wait:
            execution_id = runner.submit(pipeline_id, payload)
            return SubmitResponse(execution_id=execution_id)
        execution = runner.execute(pipeline_id, payload)
    except NotFoundError as e:
        raise _pipeline_not_found(pipeline_id) from e
    except NotReadyError as e:
        raise HTTPException(
            status_code=409,
            detail={
                "error": "Pipeline execution failed",
                "pipeline_id": pipeline_id,
                "message": str(e),
                "status": e.status,
            },
        ) from e

    logger.info(
        "Pipeline run via API",
        pipeline_id=pipeline_id,
        execution_id=execution.id,
        status=execution.status.value,
    )
    return execution.to_dict()


# ----------------------------------------------------------------------
# Executions
# ----------------------------------------------------------------------


@router.get("/executions")
def list_executions(request: Request, pipeline_id: str | None = None):
    """List executions, optionally filtered by pipeline."""
    executions = _registry(request).list_executions(pipeline_id)
    return {
        "executions": [e.to_dict() for e in executions],
        "total": len(executions),
    }


@router.get("/executions/stats")
def execution_stats(request: Request):
    """Execution counts by outcome."""
    return _registry(request).execution_statistics()


@router.get("/executions/{execution_id}")
def get_execution(request: Request, execution_id: str):
    """Get an execution record."""
    execution = _registry(request).get_execution(execution_id)
    if execution is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "Execution not found", "execution_id": execution_id},
        )
    return execution.to_dict()


@router.post("/executions/{execution_id}/cancel")
def cancel_execution(request: Request, execution_id: str):
    """Request cancellation of a running execution."""
    if _runner(request).cancel(execution_id):
        return {
            "status": "cancelling",
            "execution_id": execution_id,
            "message": "Cancellation requested",
        }

    execution = _registry(request).get_execution(execution_id)
    if execution is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "Execution not found", "execution_id": execution_id},
        )
    return {
        "status": "not_running",
        "execution_id": execution_id,
        "message": f"Execution already {execution.status.value}",
    }


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}
