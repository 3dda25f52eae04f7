"""
Tests for the health check and root endpoints.
"""


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["uptime"] >= 0
    assert "timestamp" in data


def test_root(client):
    response = client.get("/")

    assert response.json() == {"status": "100K Tracker API running"}


def test_unknown_route_uses_error_body(client):
    response = client.get("/api/nowhere")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
