"""
Pytest Configuration and Fixtures

Shared fixtures for the unit tests (in-process Elasticsearch fake, API
client with overridden dependencies) and for the live tests that require a
running Docker stack.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults. MUST be before any soap_assist imports.
#
# 1. Load .env first so that Docker-matching credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "soap",
    "POSTGRES_PASSWORD": "soap_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "soap_db",
    "OPENAI_API_KEY": "mock",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import time  # noqa: E402
from collections.abc import Generator  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from soap_assist.services.index_client import SuggestionIndexClient  # noqa: E402
from tests.fakes import INDEX, FakeElasticsearch, StaticPatientResolver  # noqa: E402

BASE_URL = "http://localhost:8000"


# ---------------------------------------------------------------------------
# In-process fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    """Fresh, empty in-process Elasticsearch."""
    return FakeElasticsearch()


@pytest.fixture
def index_client(fake_es: FakeElasticsearch) -> SuggestionIndexClient:
    """Index client wired to the fake via ``httpx.MockTransport``."""
    return SuggestionIndexClient(
        base_url="http://elasticsearch.test:9200",
        index=INDEX,
        timeout=1.0,
        refresh="true",
        transport=fake_es.transport(),
    )


@pytest.fixture
def api_client(index_client: SuggestionIndexClient) -> Generator[TestClient, None, None]:
    """
    TestClient with infrastructure mocked out.

    TestClient triggers the lifespan handler, so the index bootstrap and the
    database probe are patched; services are wired to the fake index.
    """
    from soap_assist.api import deps
    from soap_assist.main import app
    from soap_assist.services.llm import LLMService

    app.dependency_overrides[deps.get_search_index] = lambda: index_client
    app.dependency_overrides[deps.get_llm_service] = lambda: LLMService(api_key="mock")
    app.dependency_overrides[deps.get_patient_resolver] = lambda: StaticPatientResolver()

    with (
        patch("soap_assist.main.ensure_search_index", new_callable=AsyncMock) as mock_es,
        patch("soap_assist.main.check_database", new_callable=AsyncMock) as mock_db,
        patch("soap_assist.main.get_index_client", return_value=index_client),
    ):
        mock_es.return_value = True
        mock_db.return_value = True
        with TestClient(app, raise_server_exceptions=False) as client:
            yield client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Live stack (pytest -m live)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready or timeout expires.

    Polls /health endpoint with 1s intervals for up to 30s.
    Fails the test session if API is unreachable (Docker likely not running).
    """
    url = f"{BASE_URL}/health"
    timeout = 30
    start = time.time()

    print("\n[Test] Waiting for API...")
    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                print("API Ready")
                return
        except httpx.RequestError:
            pass
        time.sleep(1)

    pytest.fail("API unreachable. Docker is likely down.")


@pytest.fixture(scope="session")
def live_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """
    HTTP client for live tests, pointed at the SOAP endpoints.

    Yields:
        httpx.Client: Session-scoped client, automatically closed after tests.
    """
    with httpx.Client(
        base_url=f"{BASE_URL}/api/v1/soap",
        headers={"X-Tenant-ID": f"live-test-{int(time.time())}"},
        timeout=10.0,
    ) as client:
        yield client
