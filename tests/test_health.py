"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' for a reachable store
  - No authentication required
"""

from __future__ import annotations


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _ = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_unknown_host_rejected(api_client):
    """TrustedHostMiddleware refuses Host headers outside the allow list."""
    client, _ = api_client
    resp = client.get("/api/v1/health", headers={"Host": "evil.example"})
    assert resp.status_code == 400


def test_unknown_host_rejected_before_cors_preflight(api_client):
    """TrustedHost wraps CORS, so a preflight to a foreign host never gets CORS headers."""
    client, _ = api_client
    resp = client.options(
        "/api/v1/auth/login",
        headers={
            "Host": "evil.example",
            "Origin": "http://localhost",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 400
    assert "access-control-allow-origin" not in resp.headers
