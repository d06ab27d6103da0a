"""FastAPI application for the pipeline engine."""

from __future__ import annotations

from fastapi import FastAPI

from stepflow import __version__
from stepflow.api.handlers import router
from stepflow.config import ApiConfig
from stepflow.pipeline.runner import PipelineRunner


def create_app(
    config: ApiConfig | None = None,
    runner: PipelineRunner | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Optional API configuration. If not provided, loads from env.
        runner: Optional runner; a default one with its own registry is
            created otherwise.

    Returns:
        Configured FastAPI application.
    """
    if config is None:
        config = ApiConfig()
    if runner is None:
        runner = PipelineRunner.from_config()

    app = FastAPI(
        title="stepflow",
        description="JSON-driven pipeline execution engine",
        version=__version__,
        docs_url="/api/docs",
        redoc_url=None,
    )

    app.state.config = config
    app.state.runner = runner
    app.state.registry = runner.registry

    app.include_router(router, prefix="/api")

    @app.on_event("shutdown")
    async def shutdown():
        """Stop background executions on app shutdown."""
        runner.shutdown(wait=False)

    return app

