import os

# Must be set before the app (and its limiters) are imported
os.environ["EXTRACT_RATE_LIMIT"] = "1000/minute"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

import fakeredis
import fakeredis.aioredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from makerbook.main import app
from makerbook.db import Base, get_db
from makerbook.infra import redis_client
from makerbook.services.extraction import ExtractionClient
from makerbook import models  # noqa: F401  (registers tables)

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # one shared connection so every session sees the same in-memory db
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

API_URL = "https://refyne.test"
API_KEY = "rf_secret_key_123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    redis_client._redis_async = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    yield redis_client._redis_async
    redis_client._redis_async = None


class FakeRefyne:
    """Scripted stand-in for the extraction service, served through httpx.MockTransport."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, status_code: int = 200, json=None, exc: Exception = None):
        self.routes[(method, path)] = (status_code, json, exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"error": "not found"})
        status_code, body, exc = self.routes[key]
        if exc is not None:
            raise exc
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, **kwargs) -> ExtractionClient:
        return ExtractionClient(api_url=API_URL, api_key=API_KEY, transport=self.transport, **kwargs)


@pytest.fixture
def refyne(monkeypatch):
    """Route every ExtractionClient.from_settings() through a FakeRefyne."""
    fake = FakeRefyne()
    monkeypatch.setattr(
        ExtractionClient,
        "from_settings",
        classmethod(lambda cls, transport=None: fake.client()),
    )
    return fake
