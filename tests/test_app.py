import pytest
from fastapi.testclient import TestClient

from database import get_db
from services.contract_metrics import observe_analysis_run
from web.main import app


@pytest.fixture()
def app_client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    try:
        yield client
    finally:
        client.close()
        app.dependency_overrides.pop(get_db, None)


def test_healthz_pings_database(app_client):
    response = app_client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": {"ok": True}}


def test_metrics_exposes_analysis_counters(app_client):
    observe_analysis_run("user-service", "success", 0.25)

    response = app_client.get("/metrics")

    assert response.status_code == 200
    assert 'contract_analysis_runs_total{service="user-service",outcome="success"}' in response.text


def test_routes_are_mounted_under_api(app_client):
    paths = {route.path for route in app.routes}

    assert "/api/analysis/{service_name}" in paths
    assert "/api/specs/count" in paths
    assert "/api/baseline/{service_name}" in paths
    assert "/api/breaking-changes/statistics" in paths
