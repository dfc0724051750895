from ota_server.core.metrics import render_metrics


def test_health_endpoint(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ok"
    assert response.headers["X-Request-ID"] == response.json()["meta"]["request_id"]


def test_request_id_is_propagated(client):
    response = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["meta"]["request_id"] == "req-123"


def test_readiness_endpoint(client):
    response = client.get("/api/v1/health/readiness")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "ready"
    assert data["dependencies"] == {"database": True, "storage": True}


def test_readiness_degrades_when_database_unavailable(client, monkeypatch):
    monkeypatch.setattr("ota_server.stores.sqlalchemy_store.SqlAlchemyBundleStore.ping", lambda self: False)

    response = client.get("/api/v1/health/readiness")
    assert response.status_code == 503
    data = response.json()["data"]
    assert data["status"] == "degraded"
    assert data["dependencies"] == {"database": False, "storage": True}


def test_http_metrics_use_route_templates(client):
    client.get("/api/v1/health")
    client.get("/api/v1/does-not-exist")

    payload, content_type = render_metrics()
    text = payload.decode()
    assert content_type.startswith("text/plain")
    assert 'path="/api/v1/health"' in text
    assert 'path="unmatched"' in text
    assert "/api/v1/does-not-exist" not in text
