def test_health_reports_backend(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["storage_backend"] == "memory"


def test_root(client):
    assert client.get("/").json()["name"] == "circuitflow"


def test_correlation_id_is_echoed(client, admin_headers):
    response = client.get(
        "/api/v1/circuits", headers={**admin_headers, "X-Correlation-Id": "corr-123"}
    )

    assert response.headers["X-Correlation-Id"] == "corr-123"


def test_correlation_id_generated_when_missing(client):
    assert client.get("/health").headers["X-Correlation-Id"]
