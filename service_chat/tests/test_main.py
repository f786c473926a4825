"""
Tests for the chat gateway HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from shared.config import GatewayConfig
from service_chat.app.main import GatewayService, create_app


CORS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "POST, OPTIONS",
    "access-control-allow-headers": "Content-Type",
}


def user_turn(text):
    return {"role": "user", "parts": [{"text": text}]}


def assert_cors(response):
    for header, value in CORS.items():
        assert response.headers[header] == value


@pytest.fixture
def app(gateway_config, completion_client):
    """Create FastAPI app wired to the upstream stub."""
    return create_app(gateway_config, completion_client)


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


class TestServiceEndpoints:
    """Service-level routes."""

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "chat"
        assert data["endpoint"] == "/api/chat"

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "chat"
        assert data["status"] == "ok"
        assert data["dependencies"]["upstream_credentials"] == "ok"

    def test_metrics_endpoint(self, client):
        client.post("/api/chat", json={"history": [user_turn("Hello")]})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "upstream_requests_total" in response.text
        assert "admission_in_flight" in response.text

    def test_status_endpoint(self, client):
        client.post("/api/chat", json={"history": [user_turn("Hello")]})

        response = client.get("/api/v1/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "operational"
        assert data["upstream"]["configured"] is True
        assert data["rate_limiter"]["total_clients"] == 1
        assert data["cache"]["entries"] == 1
        assert data["admission"]["in_flight"] == 0
        assert data["admission"]["limit"] == 2

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_service_exposed_on_app_state(self, app):
        assert isinstance(app.state.gateway_service, GatewayService)


class TestChatEndpoint:
    """Behaviour of /api/chat end to end."""

    def test_preflight(self, client):
        response = client.options("/api/chat")

        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)

    def test_get_is_not_allowed(self, client):
        response = client.get("/api/chat")

        assert response.status_code == 405
        assert response.json() == {"error": "Method Not Allowed"}
        assert_cors(response)

    def test_reply_is_cached(self, client, upstream):
        body = {"history": [user_turn("Hello")]}

        first = client.post("/api/chat", json=body)
        second = client.post("/api/chat", json=body)

        assert first.status_code == 200
        assert first.json() == {"reply": "Hi there!", "cached": False, "queued": True}
        assert second.json() == {"reply": "Hi there!", "cached": True, "queued": False}
        assert upstream.calls == 1
        assert upstream.last_json()["contents"] == [user_turn("Hello")]
        assert_cors(second)

    def test_rate_limit_per_forwarded_address(self, client):
        headers = {"X-Forwarded-For": "198.51.100.1, 10.0.0.1"}
        body = {"history": [user_turn("Hello")]}

        responses = [client.post("/api/chat", json=body, headers=headers) for _ in range(21)]

        assert [r.status_code for r in responses[:20]] == [200] * 20
        assert responses[20].status_code == 429
        assert responses[20].json() == {"error": "Too many requests, please slow down"}
        assert responses[20].headers["X-RateLimit-Remaining"] == "0"
        assert_cors(responses[20])

        other = client.post("/api/chat", json=body, headers={"X-Forwarded-For": "198.51.100.2"})
        assert other.status_code == 200

    def test_upstream_overload(self, client, upstream):
        upstream.status_code = 429
        upstream.payload = {"error": {"message": "Resource exhausted"}}

        response = client.post("/api/chat", json={"history": [user_turn("Hello")]})

        assert response.status_code == 429
        assert response.json() == {"error": "AI is busy, please try again later"}

    def test_upstream_error(self, client, upstream):
        upstream.status_code = 500
        upstream.payload = {"error": {"message": "Internal error encountered."}}

        response = client.post("/api/chat", json={"history": [user_turn("Hello")]})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal error encountered."}
        assert client.app.state.gateway_service.gate.in_flight == 0

    def test_history_not_a_sequence(self, client, upstream):
        response = client.post("/api/chat", json={"history": 5})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid history format"}
        assert upstream.calls == 0

    def test_invalid_json(self, client):
        response = client.post(
            "/api/chat",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_deeply_nested_json(self, client, upstream):
        depth = 100000
        response = client.post(
            "/api/chat",
            content=b"[" * depth + b"]" * depth,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}
        assert upstream.calls == 0

    def test_array_body(self, client, upstream):
        response = client.post("/api/chat", json=[user_turn("hi")])

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid history format"}
        assert upstream.calls == 0

    def test_message_shape(self, client, upstream):
        response = client.post("/api/chat", json={"message": "Hello"})

        assert response.status_code == 200
        assert upstream.last_json()["contents"] == [user_turn("Hello")]

    def test_missing_api_key(self, completion_client, upstream):
        app = create_app(GatewayConfig(_env_file=None, upstream_api_key=None), completion_client)

        with TestClient(app) as client:
            response = client.post("/api/chat", json={"history": [user_turn("Hello")]})
            health = client.get("/health")

        assert response.status_code == 500
        assert response.json() == {"error": "API Key Missing"}
        assert upstream.calls == 0
        assert health.json()["dependencies"]["upstream_credentials"] == "missing"
