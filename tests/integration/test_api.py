"""Integration tests for colorgate.api.main: FastAPI REST API endpoints.

All tests use the FastAPI TestClient with a scripted image generator placed
on ``app.state`` so that no network or GPU access occurs.  Tests cover every
endpoint:

- ``GET /api/config``: tiers, thresholds and retry/batch settings.
- ``POST /api/quality/check``: single-image quality gate.
- ``POST /api/batch/generate``: batch generation with retries.
"""

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from colorgate.api.main import app
from colorgate.generators.errors import NonRetryableGenerationError

pytestmark = pytest.mark.integration


@pytest.fixture
def make_client(test_config):
    """Build a TestClient whose app uses ``test_config`` and a given generator."""
    clients: list[TestClient] = []

    def factory(generator) -> TestClient:
        app.state.config = test_config
        app.state.generator = generator
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)
    app.state.config = None
    app.state.generator = None


@pytest.fixture
def test_client(make_client, scripted_generator, line_art_png) -> TestClient:
    """Client whose generator always returns clean line art."""
    return make_client(scripted_generator([line_art_png]))


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


# ---------------------------------------------------------------------------
# Configuration endpoint tests.
# ---------------------------------------------------------------------------


class TestGetConfig:
    """Test GET /api/config: application configuration."""

    def test_config_returns_version(self, test_client):
        resp = test_client.get("/api/config")
        assert resp.status_code == 200
        assert "version" in resp.json()

    def test_config_returns_tiers(self, test_client):
        data = test_client.get("/api/config").json()
        assert set(data["tiers"]) == {"simple", "medium", "detailed"}
        assert data["tiers"]["medium"]["max_black_ratio"] == 0.55
        assert data["default_tier"] == "medium"

    def test_config_returns_retry_and_batch(self, test_client, test_config):
        data = test_client.get("/api/config").json()
        assert data["retry"]["max_retries"] == test_config.max_retries
        assert data["batch"]["batch_size"] == test_config.batch_size


# ---------------------------------------------------------------------------
# Quality check endpoint tests.
# ---------------------------------------------------------------------------


class TestQualityCheck:
    """Test POST /api/quality/check: single-image gate."""

    def test_line_art_passes(self, test_client, line_art_png):
        resp = test_client.post("/api/quality/check", json={"image_base64": _b64(line_art_png)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["passed"] is True
        assert data["failure_reason"] is None
        assert data["tier"] == "medium"
        assert base64.b64decode(data["image"]).startswith(b"\x89PNG")

    def test_silhouette_fails(self, test_client, silhouette_png):
        resp = test_client.post(
            "/api/quality/check", json={"image_base64": _b64(silhouette_png), "tier": "simple"}
        )
        data = resp.json()
        assert data["passed"] is False
        assert data["failure_reason"] == "silhouette"
        assert data["metrics"]["largest_blob_percent"] > 0.05
        assert data["tier"] == "simple"

    def test_data_url_accepted(self, test_client, black_png):
        payload = "data:image/png;base64," + _b64(black_png)
        data = test_client.post("/api/quality/check", json={"image_base64": payload}).json()
        assert data["failure_reason"] == "black_fill"

    def test_undecodable_image_returns_400(self, test_client):
        resp = test_client.post("/api/quality/check", json={"image_base64": _b64(b"not an image")})
        assert resp.status_code == 400

    def test_invalid_base64_returns_400(self, test_client):
        resp = test_client.post("/api/quality/check", json={"image_base64": "***"})
        assert resp.status_code == 400

    def test_unknown_tier_returns_400(self, test_client, line_art_png):
        resp = test_client.post(
            "/api/quality/check", json={"image_base64": _b64(line_art_png), "tier": "heroic"}
        )
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Batch generation endpoint tests.
# ---------------------------------------------------------------------------


class TestBatchGenerate:
    """Test POST /api/batch/generate: generation with quality gates and retries."""

    def test_all_pages_pass(self, test_client):
        resp = test_client.post(
            "/api/batch/generate",
            json={"pages": [{"page_index": 1, "prompt": "a cat"}, {"page_index": 2, "prompt": "a dog"}]},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success_count"] == 2
        assert data["fail_count"] == 0
        assert data["skipped_count"] == 0
        for result in data["results"]:
            assert result["status"] == "done"
            assert result["passed_gates"] is True
            assert result["attempts"] == 1
            assert base64.b64decode(result["image"]).startswith(b"\x89PNG")

    def test_results_keep_request_order(self, test_client):
        pages = [{"page_index": index, "prompt": f"page {index}"} for index in (3, 1, 2)]
        data = test_client.post("/api/batch/generate", json={"pages": pages}).json()
        assert [result["page_index"] for result in data["results"]] == [3, 1, 2]

    def test_exhausted_page_is_done_with_warning(self, make_client, scripted_generator, silhouette_png, test_config):
        client = make_client(scripted_generator([silhouette_png]))
        data = client.post(
            "/api/batch/generate", json={"pages": [{"page_index": 1, "prompt": "a bat"}]}
        ).json()

        result = data["results"][0]
        assert result["status"] == "done"
        assert result["passed_gates"] is False
        assert result["attempts"] == test_config.max_retries
        assert "image" in result
        assert "did not pass quality gates" in result["warning"]
        assert result["failure_reason"] == "silhouette"
        assert data["success_count"] == 0
        assert data["fail_count"] == 1

    def test_fatal_page_is_failed(self, make_client, scripted_generator):
        client = make_client(scripted_generator([NonRetryableGenerationError("billing_limit")]))
        data = client.post(
            "/api/batch/generate", json={"pages": [{"page_index": 5, "prompt": "a whale"}]}
        ).json()

        result = data["results"][0]
        assert result["status"] == "failed"
        assert result["attempts"] == 1
        assert result["error_code"] == "billing_limit"
        assert "Billing" in result["error"]
        assert "image" not in result

    def test_size_forwarded_to_generator(self, make_client, scripted_generator, line_art_png):
        generator = scripted_generator([line_art_png])
        client = make_client(generator)
        client.post(
            "/api/batch/generate",
            json={"pages": [{"page_index": 1, "prompt": "a cat"}], "size": "1536x1024"},
        )
        assert generator.sizes == ["1536x1024"]

    def test_empty_pages_returns_400(self, test_client):
        resp = test_client.post("/api/batch/generate", json={"pages": []})
        assert resp.status_code == 400

    def test_whitespace_prompt_returns_400(self, make_client, scripted_generator, line_art_png):
        generator = scripted_generator([line_art_png])
        client = make_client(generator)
        resp = client.post("/api/batch/generate", json={"pages": [{"page_index": 1, "prompt": "   "}]})
        assert resp.status_code == 400
        assert generator.calls == 0

    def test_invalid_size_returns_400(self, test_client):
        resp = test_client.post(
            "/api/batch/generate",
            json={"pages": [{"page_index": 1, "prompt": "a cat"}], "size": "800x600"},
        )
        assert resp.status_code == 400

    def test_injected_generator_not_closed_on_shutdown(self, test_config, scripted_generator, line_art_png):
        generator = scripted_generator([line_art_png])
        app.state.config = test_config
        app.state.generator = generator
        try:
            with TestClient(app):
                pass
        finally:
            app.state.config = None
            app.state.generator = None
        assert generator.closed is False
