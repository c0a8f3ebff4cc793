import os

# Must be set before media_search is imported: settings and the engine are built at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEARCH_HISTORY_RETENTION_DAYS", "0")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from media_search.api.dependencies import get_openverse_service
from media_search.core.database import Base, build_engine, get_db
from media_search.main import app
from media_search.services.openverse_service import OpenverseService
from media_search.services.search_cache import search_cache

OPENVERSE_TEST_URL = "https://api.openverse.test/v1"
PLACEHOLDER = "https://placeholder.test/none.png"

SAMPLE_RESULTS = [
    {
        "id": "a1",
        "title": "Sunset over the bay",
        "url": "https://cdn.test/sunset.jpg",
        "thumbnail": "https://api.openverse.test/v1/images/a1/thumb/",
        "provider": "flickr",
        "source": "flickr",
        "license": "by",
        "license_version": "2.0",
        "license_url": "https://creativecommons.org/licenses/by/2.0/",
        "creator": "jdoe",
        "tags": [{"name": "sunset"}, {"name": "bay"}],
        "indexed_on": "2021-03-01T00:00:00Z",
    },
    {
        "id": "a2",
        "url": "https://cdn.test/untitled.jpg",
    },
]


class OpenverseStub:
    """Stands in for the Openverse API via httpx.MockTransport"""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.payload = {"result_count": 2, "page_count": 1, "results": SAMPLE_RESULTS}
        # Callable taking the request and returning an exception to raise
        self.error = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        return httpx.Response(self.status_code, json=self.payload)

    def service(self, cache=None) -> OpenverseService:
        return OpenverseService(
            base_url=OPENVERSE_TEST_URL,
            timeout=10,
            placeholder_thumbnail=PLACEHOLDER,
            cache=cache,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def openverse():
    return OpenverseStub()


@pytest.fixture(autouse=True)
def clear_search_cache():
    search_cache.clear()
    yield
    search_cache.clear()


@pytest.fixture
def client(session_factory, openverse):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_openverse_service] = lambda: openverse.service()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    def _register(email="alice@example.com", password="s3cret-pass", name="Alice"):
        response = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def login(client):
    def _login(email="alice@example.com", password="s3cret-pass"):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture
def auth_headers(register_user, login):
    register_user()
    return login()


class FailingSession:
    """Session whose every query raises, standing in for a database outage"""

    def __init__(self, error):
        self.error = error
        self.rolled_back = False

    def query(self, *args, **kwargs):
        raise self.error

    def rollback(self):
        self.rolled_back = True

    def close(self):
        pass


@pytest.fixture
def failing_db():
    """Point get_db at a FailingSession raising the given SQLAlchemy error"""
    def _install(error):
        session = FailingSession(error)

        def override_get_db():
            yield session

        app.dependency_overrides[get_db] = override_get_db
        return session

    return _install
