import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import app
from app.models.store import InMemoryStore
from app.services.forms.discovery import FormDiscoverer
from app.services.users import LineUserService, get_line_user_service


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def make_discoverer(settings):
    def _make(recorder, **overrides) -> FormDiscoverer:
        cfg = Settings(**overrides) if overrides else settings
        return FormDiscoverer(cfg, transport=recorder.transport())

    return _make


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def client(memory_store):
    app.dependency_overrides[get_line_user_service] = lambda: LineUserService(memory_store)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def override():
    def _override(dependency, value) -> None:
        app.dependency_overrides[dependency] = lambda: value

    return _override
