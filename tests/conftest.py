"""Pytest configuration and fixtures."""

import os

# Cheap hashes for the whole test session; Settings picks this up too
os.environ.setdefault("SACHI_BCRYPT_ROUNDS", "4")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from sachi.config import Settings  # noqa: E402
from sachi.main import create_app  # noqa: E402
from sachi.services.auth import configure_hashing  # noqa: E402
from sachi.services.store import CredentialStore  # noqa: E402

configure_hashing(int(os.environ["SACHI_BCRYPT_ROUNDS"]))

ANN = {"name": "Ann", "email": "ann@x.com", "password": "secret1"}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    """A credential store on a fresh database with a controllable clock."""
    credential_store = CredentialStore.open(tmp_path / "store.db", clock=clock)
    yield credential_store
    credential_store.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, db_file="test.db", log_level="info")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create a test client; entering it runs the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registered_user(client):
    """Register Ann and return her credentials."""
    response = client.post("/api/register", json=ANN)
    assert response.status_code == 200
    return dict(ANN)


@pytest.fixture
def auth_client(client, registered_user):
    """A client holding a valid session cookie for Ann."""
    response = client.post(
        "/api/login",
        json={"email": registered_user["email"], "password": registered_user["password"]},
    )
    assert response.status_code == 200
    assert client.cookies.get("session_token")
    return client
