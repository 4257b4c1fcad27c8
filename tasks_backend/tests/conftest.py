"""Pytest configuration and fixtures."""

from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

from src.api.auth import AuthService
from src.api.main import create_app
from src.api.settings import Settings

TEST_SECRET = "test-secret"


class AuthHeaders(dict):
    """Dict subclass that also stores the username it was issued for."""

    def __init__(self, *args, username: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.username = username


@pytest.fixture
def settings() -> Settings:
    # Lowest bcrypt cost keeps the suite fast
    return Settings(persistence_backend="memory", jwt_secret=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def auth_service(settings: Settings) -> AuthService:
    return AuthService.from_settings(settings)


@pytest.fixture
def app(settings: Settings):
    """A fresh application with empty in-memory stores for each test."""
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_and_login(client) -> Callable[..., AuthHeaders]:
    """Register a user, log in, and return headers carrying the raw token."""

    def _make(username: str = "alice", password: str = "wonderland") -> AuthHeaders:
        res = client.post("/register", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        res = client.post("/login", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        return AuthHeaders({"Authorization": res.json()["token"]}, username=username)

    return _make


@pytest.fixture
def alice(register_and_login) -> Dict[str, str]:
    return register_and_login("alice", "wonderland")


@pytest.fixture
def bob(register_and_login) -> Dict[str, str]:
    return register_and_login("bob", "builder")
