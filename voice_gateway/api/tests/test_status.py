"""Tests for /status, /metrics and application wiring."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from voice_gateway.api.app import create_app
from voice_gateway.api.backend import OpenAIBackend
from voice_gateway.api.settings import load_config

from .conftest import TEST_PERSONA


@pytest.fixture
def pinging_client(backend) -> TestClient:
    config = load_config(environ={"PING_OPENAI": "1", "APP_ENV": "production"})
    return TestClient(create_app(config, backend=backend, persona=TEST_PERSONA))


@pytest.mark.component
class TestStatus:
    def test_liveness_without_backend_ping(self, client, backend):
        response = client.get("/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["env"] == "development"
        assert body["uptime"] >= 0
        assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None
        assert "openai" not in body
        assert backend.calls == []

    def test_ping_reports_reachable_backend(self, pinging_client, backend):
        response = pinging_client.get("/status")

        assert response.status_code == 200
        body = response.json()
        assert body["openai"] == "reachable"
        assert body["env"] == "production"
        assert len(backend.calls_to("list_models")) == 1

    def test_ping_reports_unreachable_backend(self, pinging_client, backend):
        backend.fail("list_models", ConnectionError("connection refused"))

        response = pinging_client.get("/status")

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "ok"
        assert body["openai"] == "unreachable"
        assert body["openai_error"] == "connection refused"


@pytest.mark.component
class TestMetrics:
    def test_exposes_request_counters(self, client):
        client.post("/chat", json={"messages": []})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'gateway_requests_total{capability="chat",outcome="ok"}' in response.text
        assert "gateway_request_seconds_bucket" in response.text

    def test_rejections_are_counted_separately(self, client):
        client.post("/tts", json={"text": ""})

        response = client.get("/metrics")

        assert 'gateway_requests_total{capability="tts",outcome="rejected"}' in response.text


@pytest.mark.component
class TestApplicationWiring:
    def test_cors_allows_any_origin(self, client):
        response = client.options(
            "/chat",
            headers={
                "Origin": "http://example.test",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] in ("*", "http://example.test")

    def test_unknown_route_is_404(self, client):
        assert client.get("/nope").status_code == 404

    def test_injected_backend_is_not_closed_on_shutdown(self, app, backend):
        with TestClient(app):
            pass

        assert backend.closed is False

    def test_owned_backend_is_built_from_config(self):
        config = load_config(
            environ={"OPENAI_API_KEY": "sk-test", "CHAT_MODEL": "gpt-test"}
        )

        app = create_app(config)

        assert isinstance(app.state.backend, OpenAIBackend)
        assert app.state.backend.chat_model == "gpt-test"
        with TestClient(app):
            pass
