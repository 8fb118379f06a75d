from __future__ import annotations

from fastapi.testclient import TestClient

from ratelimiter.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_request_id_on_admin_routes():
    resp = client.get(
        "/v1/limiter/lists/white",
        headers={"X-Request-ID": "req-admin-1", "X-API-Key": "test-api-key-123"},
    )

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == "req-admin-1"
