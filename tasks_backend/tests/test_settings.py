import logging

import pytest

from src.api.logging_setup import setup_logging
from src.api.settings import load_settings

_ENV_VARS = [
    "PERSISTENCE_BACKEND",
    "MONGO_URI",
    "MONGO_DB_NAME",
    "JWT_SECRET",
    "JWT_ALGORITHM",
    "TOKEN_EXPIRATION_HOURS",
    "BCRYPT_ROUNDS",
    "HOST",
    "PORT",
    "CORS_ALLOW_ORIGINS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        s = load_settings()
        assert s.persistence_backend == "memory"
        assert s.port == 5000
        assert s.token_expiration_hours == 24
        assert s.bcrypt_rounds == 10
        assert s.cors_allow_origins == ["*"]
        assert s.uses_default_secret

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("PERSISTENCE_BACKEND", "Mongo")
        clean_env.setenv("MONGO_URI", "mongodb://db:27017")
        clean_env.setenv("JWT_SECRET", "shh")
        clean_env.setenv("PORT", "8080")
        clean_env.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")
        s = load_settings()
        assert s.persistence_backend == "mongo"
        assert s.mongo_uri == "mongodb://db:27017"
        assert s.jwt_secret == "shh"
        assert not s.uses_default_secret
        assert s.port == 8080
        assert s.cors_allow_origins == ["http://a.test", "http://b.test"]

    def test_invalid_values_fall_back(self, clean_env):
        clean_env.setenv("PERSISTENCE_BACKEND", "sqlite")
        clean_env.setenv("PORT", "eighty")
        s = load_settings()
        assert s.persistence_backend == "memory"
        assert s.port == 5000


class TestLoggingSetup:
    def test_single_handler_after_repeated_setup(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging("debug")
            setup_logging("DEBUG")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            for h in list(root.handlers):
                root.removeHandler(h)
            for h in saved_handlers:
                root.addHandler(h)
            root.setLevel(saved_level)
