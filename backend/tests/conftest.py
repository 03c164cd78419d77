import pytest
from fastapi.testclient import TestClient

from src.api.config import Settings
from src.api.database import build_engine, build_session_factory
from src.api.main import create_app
from src.api.models import Base

TEST_SECRET = "test-secret-key"
TEST_PASSWORD = "password123"


@pytest.fixture
def settings():
    return Settings(secret_key=TEST_SECRET, database_url="sqlite://", access_token_expire_minutes=5)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    """A session on a fresh in-memory database, for store-level tests."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def register(client, email, name="Test User", password=TEST_PASSWORD):
    response = client.post(
        "/auth/register", json={"name": name, "email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(client):
    return bearer(register(client, "alice@example.com", name="Alice"))


@pytest.fixture
def bob(client):
    return bearer(register(client, "bob@example.com", name="Bob"))
