"""
Tracker Test Configuration

Shared fixtures for all tests.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from jobtrack.client import ApiClient
from jobtrack.main import app, get_service
from jobtrack.schemas import JobApplication, JobApplicationCreate
from jobtrack.service import ApplicationService
from jobtrack.store import JSONFileStore


# =============================================================================
# FIXTURES: Storage and service
# =============================================================================

@pytest.fixture
def store(tmp_path) -> JSONFileStore:
    """JSON store rooted in a temporary directory."""
    return JSONFileStore(str(tmp_path / "db"))


@pytest.fixture
def service(store) -> ApplicationService:
    return ApplicationService(store)


@pytest.fixture
def acme(service) -> JobApplication:
    """One freshly created application."""
    return service.create(JobApplicationCreate(title="SWE", company="Acme", tags=["python"]))


# =============================================================================
# FIXTURES: HTTP
# =============================================================================

@pytest.fixture
def client(service):
    """FastAPI test client wired to the temporary service."""
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def api_client(service):
    """ApiClient talking to the real app in-process."""
    app.dependency_overrides[get_service] = lambda: service
    yield ApiClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))
    app.dependency_overrides.clear()

