"""
Main Application Unit Tests

Tests for application startup, health and error rendering with mocked
infrastructure. Runs without Docker: Elasticsearch is the in-process fake
and the record store probe is patched.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from soap_assist.services.index_client import INDEX_DEFINITION
from tests.fakes import FakeElasticsearch, StaticPatientResolver


def test_health_check(api_client: TestClient):
    """
    Verify /health returns 200 with per-dependency status when both
    Elasticsearch and the record store respond.
    """
    response = api_client.get("/health")

    assert response.status_code == 200
    data = response.json()

    assert data["ok"] is True
    assert data["elasticsearch"] == {"status": "green", "cluster_name": "test-cluster"}
    assert data["database"] == {"status": "connected"}
    assert "timestamp" in data


def test_health_check_elasticsearch_down(api_client: TestClient, fake_es: FakeElasticsearch):
    """Unreachable cluster: 503 and ok=false, the rest of the body intact."""
    fake_es.unavailable = True

    response = api_client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["ok"] is False
    assert data["elasticsearch"]["status"] == "unreachable"
    assert data["database"]["status"] == "connected"


def test_health_check_database_down(api_client: TestClient):
    """Record store unreachable: 503 even though the cluster is green."""
    with patch("soap_assist.main.check_database", new=AsyncMock(return_value=False)):
        response = api_client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["ok"] is False
    assert data["elasticsearch"]["status"] == "green"
    assert data["database"]["status"] == "disconnected"


def test_startup_survives_missing_elasticsearch(fake_es: FakeElasticsearch, index_client):
    """
    The app starts even when the index bootstrap fails; the real
    ensure_search_index is exercised here, only the database probe is mocked.
    """
    from soap_assist.main import app

    fake_es.unavailable = True
    with (
        patch("soap_assist.main.get_index_client", return_value=index_client),
        patch("soap_assist.main.check_database", new_callable=AsyncMock) as mock_db,
    ):
        mock_db.return_value = False
        with TestClient(app) as client:
            response = client.get("/health")

    assert response.status_code == 503


def test_unknown_route_is_404(api_client: TestClient):
    assert api_client.get("/api/v1/soap/nope").status_code == 404


def test_index_mapping_created_after_startup_outage(fake_es: FakeElasticsearch, index_client):
    """
    Elasticsearch down during startup and back before the first save: the
    background write creates the index with its mapping first.
    """
    from soap_assist.api import deps
    from soap_assist.main import app

    app.dependency_overrides[deps.get_search_index] = lambda: index_client
    app.dependency_overrides[deps.get_patient_resolver] = lambda: StaticPatientResolver()
    fake_es.unavailable = True
    try:
        with (
            patch("soap_assist.main.get_index_client", return_value=index_client),
            patch("soap_assist.main.check_database", new=AsyncMock(return_value=True)),
        ):
            with TestClient(app) as client:
                assert not fake_es.exists

                fake_es.unavailable = False
                response = client.post(
                    "/api/v1/soap/index",
                    json={"plan": "Recheck in two weeks"},
                    headers={"X-Tenant-ID": "clinic-1"},
                )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 202
    assert fake_es.mapping == INDEX_DEFINITION
    assert [d["tenant_id"] for d in fake_es.docs] == ["clinic-1"]
