"""HTTP surface for the pipeline engine.

Exposes pipeline CRUD, execution and polling endpoints with FastAPI.

Usage:
    # Start the API server
    python -m stepflow.api

    # Or via CLI
    stepflow serve

Environment variables:
    STEPFLOW_API_HOST: Host to bind (default: 127.0.0.1)
    STEPFLOW_API_PORT: Port to bind (default: 8420)
"""

from stepflow.api.server import create_app

__all__ = ["create_app"]
