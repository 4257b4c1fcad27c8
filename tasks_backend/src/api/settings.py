from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

DEFAULT_JWT_SECRET = "change-me"


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'mongo'
    - MONGO_URI: MongoDB connection string. Default 'mongodb://localhost:27017'
    - MONGO_DB_NAME: database holding the users/tasks collections. Default 'tasks'
    - JWT_SECRET: secret used to sign session tokens
    - JWT_ALGORITHM: token signing algorithm. Default 'HS256'
    - TOKEN_EXPIRATION_HOURS: session token lifetime in hours. Default 24
    - BCRYPT_ROUNDS: bcrypt cost factor for password hashing. Default 10
    - HOST / PORT: listening address. Default 0.0.0.0:5000
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level. Default 'INFO'
    """

    persistence_backend: str = "memory"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "tasks"
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_expiration_hours: int = 24
    bcrypt_rounds: int = 10
    host: str = "0.0.0.0"
    port: int = 5000
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Read settings from the current process environment."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "mongo"}:
        # Fallback to memory if unsupported
        backend = "memory"

    return Settings(
        persistence_backend=backend,
        mongo_uri=_get_env("MONGO_URI", "mongodb://localhost:27017").strip(),
        mongo_db_name=_get_env("MONGO_DB_NAME", "tasks").strip(),
        jwt_secret=_get_env("JWT_SECRET", DEFAULT_JWT_SECRET),
        jwt_algorithm=_get_env("JWT_ALGORITHM", "HS256").strip(),
        token_expiration_hours=_parse_int(_get_env("TOKEN_EXPIRATION_HOURS", "24"), 24),
        bcrypt_rounds=_parse_int(_get_env("BCRYPT_ROUNDS", "10"), 10),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "5000"), 5000),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Return application settings, loaded from the environment once per process."""
    return load_settings()
