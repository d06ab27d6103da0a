"""Integration tests for the HTTP API."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from pipeline_helpers import make_step

from stepflow.api.server import create_app
from stepflow.config import ApiConfig, EngineConfig
from stepflow.pipeline.clock import InstantClock
from stepflow.pipeline.constants import (
    DATA_TRANSFORM_PIPELINE_ID,
    TEXT_PROCESSOR_PIPELINE_ID,
)
from stepflow.pipeline.definition import StepType
from stepflow.pipeline.registry import PipelineRegistry
from stepflow.pipeline.runner import PipelineRunner


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client over a registry seeded with the sample pipelines."""
    registry = PipelineRegistry()
    registry.load_samples()
    runner = PipelineRunner(
        registry,
        config=EngineConfig(load_samples=False),
        clock=InstantClock(),
    )
    app = create_app(ApiConfig(), runner=runner)
    with TestClient(app) as client:
        yield client


def _definition(**overrides):
    definition = {
        "id": "api-pipeline",
        "name": "API Pipeline",
        "description": "Created over HTTP",
        "steps": [make_step("check", operation="validate").model_dump(mode="json")],
    }
    definition.update(overrides)
    return definition


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestPipelinesEndpoint:
    """Tests for /api/pipelines."""

    def test_list_samples(self, client: TestClient) -> None:
        response = client.get("/api/pipelines")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        ids = {p["id"] for p in data["pipelines"]}
        assert ids == {TEXT_PROCESSOR_PIPELINE_ID, DATA_TRANSFORM_PIPELINE_ID}

    def test_get_pipeline(self, client: TestClient) -> None:
        response = client.get(f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Text Processor"
        assert data["status"] == "ready"
        assert len(data["steps"]) == 3

    def test_get_pipeline_not_found(self, client: TestClient) -> None:
        response = client.get("/api/pipelines/missing")
        assert response.status_code == 404
        assert response.json()["detail"] == {
            "error": "Pipeline not found",
            "pipeline_id": "missing",
        }

    def test_create_pipeline(self, client: TestClient) -> None:
        response = client.post("/api/pipelines", json=_definition())
        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "api-pipeline"
        assert data["status"] == "draft"

        assert client.get("/api/pipelines/api-pipeline").status_code == 200

    def test_create_invalid_pipeline(self, client: TestClient) -> None:
        response = client.post("/api/pipelines", json=_definition(steps=[]))
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "Pipeline must have at least one step"
        assert detail["field"] == "steps"

    def test_create_pipeline_nan_timeout(self, client: TestClient) -> None:
        body = (
            '{"id": "nan-pipeline", "name": "NaN", "steps": ['
            '{"id": "a", "name": "A", "step_type": "Loop", "timeout_seconds": NaN}]}'
        )
        response = client.post(
            "/api/pipelines", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "steps.0.timeout_seconds"
        assert client.get("/api/pipelines/nan-pipeline").status_code == 404

    def test_create_duplicate(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        response = client.post("/api/pipelines", json=_definition())
        assert response.status_code == 400

    def test_update_pipeline(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        response = client.put("/api/pipelines/api-pipeline", json={"name": "Renamed"})
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["description"] == "Created over HTTP"

    def test_update_not_found(self, client: TestClient) -> None:
        response = client.put("/api/pipelines/missing", json={"name": "x"})
        assert response.status_code == 404

    def test_delete_pipeline(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        response = client.delete("/api/pipelines/api-pipeline")
        assert response.status_code == 200
        assert response.json()["status"] == "deleted"
        assert client.get("/api/pipelines/api-pipeline").status_code == 404
        assert client.delete("/api/pipelines/api-pipeline").status_code == 404

    def test_set_status(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        response = client.post("/api/pipelines/api-pipeline/status", json={"status": "ready"})
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_set_invalid_status(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        response = client.post("/api/pipelines/api-pipeline/status", json={"status": "bogus"})
        assert response.status_code == 422


class TestRunEndpoint:
    """Tests for /api/pipelines/{id}/run."""

    def test_run_text_processor(self, client: TestClient) -> None:
        response = client.post(
            f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run",
            json={"content": "  Hello   World  "},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["pipeline_id"] == TEXT_PROCESSOR_PIPELINE_ID
        assert len(data["step_results"]) == 3
        assert data["output"]["content"] == "=== Formatted Text ===\n\nHello World"
        assert data["execution_time_ms"] == 3000

    def test_run_failure_is_200(self, client: TestClient) -> None:
        response = client.post(
            f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run",
            json={"content": ""},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["error_message"] == "Content cannot be empty"

    def test_run_unknown_pipeline(self, client: TestClient) -> None:
        response = client.post("/api/pipelines/missing/run", json={})
        assert response.status_code == 404

    def test_run_draft_pipeline(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        response = client.post("/api/pipelines/api-pipeline/run", json={"content": "x"})
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "Pipeline execution failed"
        assert detail["status"] == "draft"

    def test_run_after_marking_ready(self, client: TestClient) -> None:
        client.post("/api/pipelines", json=_definition())
        client.post("/api/pipelines/api-pipeline/status", json={"status": "ready"})
        response = client.post("/api/pipelines/api-pipeline/run", json={"content": "x"})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_custom_callable_not_allowed(self, client: TestClient) -> None:
        step = make_step("cwd", StepType.CUSTOM, callable_path="os:getcwd")
        client.post("/api/pipelines", json=_definition(steps=[step.model_dump(mode="json")]))
        client.post("/api/pipelines/api-pipeline/status", json={"status": "ready"})
        response = client.post("/api/pipelines/api-pipeline/run", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["error_message"] == "callable_path 'os:getcwd' is not allowed"

    def test_run_in_background(self, client: TestClient) -> None:
        response = client.post(
            f"/api/pipelines/{DATA_TRANSFORM_PIPELINE_ID}/run?wait=false",
            json={"value": 1},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        execution_id = data["execution_id"]

        execution = client.get(f"/api/executions/{execution_id}")
        assert execution.status_code == 200
        assert execution.json()["pipeline_id"] == DATA_TRANSFORM_PIPELINE_ID


class TestExecutionsEndpoint:
    """Tests for /api/executions."""

    def test_list_and_filter(self, client: TestClient) -> None:
        client.post(f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run", json={"content": "a"})
        client.post(f"/api/pipelines/{DATA_TRANSFORM_PIPELINE_ID}/run", json={"value": 1})

        response = client.get("/api/executions")
        assert response.json()["total"] == 2

        response = client.get(
            "/api/executions", params={"pipeline_id": TEXT_PROCESSOR_PIPELINE_ID}
        )
        data = response.json()
        assert data["total"] == 1
        assert data["executions"][0]["pipeline_id"] == TEXT_PROCESSOR_PIPELINE_ID

    def test_get_execution(self, client: TestClient) -> None:
        run = client.post(
            f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run", json={"content": "a"}
        ).json()
        response = client.get(f"/api/executions/{run['id']}")
        assert response.status_code == 200
        assert response.json() == run

    def test_get_execution_not_found(self, client: TestClient) -> None:
        response = client.get("/api/executions/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "Execution not found"

    def test_stats(self, client: TestClient) -> None:
        client.post(f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run", json={"content": "a"})
        client.post(f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run", json={"content": ""})

        stats = client.get("/api/executions/stats").json()
        assert stats["total_executions"] == 2
        assert stats["successful"] == 1
        assert stats["failed"] == 1
        assert stats["success_rate"] == 50.0

    def test_cancel_finished_execution(self, client: TestClient) -> None:
        run = client.post(
            f"/api/pipelines/{TEXT_PROCESSOR_PIPELINE_ID}/run", json={"content": "a"}
        ).json()
        response = client.post(f"/api/executions/{run['id']}/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == "not_running"

    def test_cancel_unknown_execution(self, client: TestClient) -> None:
        response = client.post("/api/executions/missing/cancel")
        assert response.status_code == 404
