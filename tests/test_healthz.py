from fastapi.testclient import TestClient


def test_health_check_success(simple_client: TestClient):
    """Detailed health returns the envelope with database and worker sections."""
    response = simple_client.get("/v1/healthz")

    assert response.status_code == 200

    data = response.json()
    assert data["ok"] is True

    health_data = data["data"]
    assert health_data["ok"] is True
    assert health_data["status"] == "healthy"
    assert health_data["version"] == "1.0.0"
    assert health_data["database"]["connected"] is True
    assert health_data["worker"] == {
        "active_workers": 0,
        "last_heartbeat_age_seconds": None,
        "stuck_jobs_count": 0,
        "queue_depth": 0,
    }


def test_health_check_response_structure(simple_client: TestClient):
    response = simple_client.get("/v1/healthz")

    data = response.json()
    for key in ["ok", "data", "message", "request_id", "timestamp"]:
        assert key in data

    assert "X-Request-ID" in response.headers
    assert data["request_id"] == response.headers["X-Request-ID"]


def test_request_id_is_propagated(simple_client: TestClient):
    response = simple_client.get("/v1/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["request_id"] == "req-123"


def test_liveness_ok(simple_client: TestClient):
    response = simple_client.get("/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_liveness_reports_database_outage(simple_client: TestClient, mock_session):
    mock_session.execute.side_effect = ConnectionRefusedError("connection refused")

    response = simple_client.get("/v1/health")

    assert response.status_code == 503
    body = response.json()
    assert body["ok"] is False
    assert body["status"] == "degraded"
    assert "connection refused" in body["error"]["details"]["database"]


def test_detailed_health_degraded(simple_client: TestClient, mock_session):
    mock_session.execute.side_effect = ConnectionRefusedError("connection refused")

    response = simple_client.get("/v1/healthz")

    health_data = response.json()["data"]
    assert health_data["ok"] is False
    assert health_data["status"] == "degraded"
    assert health_data["database"]["connected"] is False
