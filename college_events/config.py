"""
Runtime configuration.

Values come from environment variables (or a local .env file) and are
frozen into a Settings object that is handed to create_app(). Nothing in
the services reads os.environ directly.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import quote

from dotenv import load_dotenv

load_dotenv()

# Development-only fallback. Never use it outside a local machine.
DEV_JWT_SECRET = "dev-insecure-jwt-secret-change-me"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _database_url_from_parts() -> str:
    """Build a libpq URL from the DB_* variables when DATABASE_URL is unset."""
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    user = quote(os.getenv("DB_USER", "postgres"), safe="")
    password = os.getenv("DB_PASSWORD", "")
    name = os.getenv("DB_NAME", "college_event_management")

    auth = user if not password else f"{user}:{quote(password, safe='')}"
    return f"postgresql://{auth}@{host}:{port}/{name}"


@dataclass(frozen=True)
class Settings:
    """Application settings shared by every service blueprint."""

    database_url: str = "postgresql://postgres@localhost:5432/college_event_management"
    db_pool_min: int = 1
    db_pool_max: int = 10
    db_connect_timeout: int = 5  # seconds
    db_statement_timeout_ms: int = 15000
    db_acquire_timeout: int = 30  # seconds spent waiting for a free connection

    jwt_secret: str = DEV_JWT_SECRET
    token_expiration_minutes: int = 1440  # 24 hours

    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("*",))
    port: int = 3000
    env: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def uses_insecure_secret(self) -> bool:
        return self.jwt_secret == DEV_JWT_SECRET

    @classmethod
    def from_env(cls, env: Optional[str] = None) -> "Settings":
        """
        Read settings from the process environment.

        Raises:
            RuntimeError: JWT_SECRET is missing in production, or a numeric
                variable cannot be parsed.
        """
        env = env or os.getenv("APP_ENV", "development")

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            if env.lower() == "production":
                raise RuntimeError("JWT_SECRET is missing. Set it in .env")
            logging.warning(
                "[Config] JWT_SECRET is not set; using the development default. "
                "This is insecure and must not be used in production."
            )
            jwt_secret = DEV_JWT_SECRET

        pool_min = _env_int("DB_POOL_MIN", 1)
        pool_max = _env_int("DB_POOL_MAX", 10)
        if pool_min < 0 or pool_max < 1 or pool_min > pool_max:
            raise RuntimeError("DB_POOL_MIN/DB_POOL_MAX must satisfy 0 <= min <= max, max >= 1")

        return cls(
            database_url=os.getenv("DATABASE_URL") or _database_url_from_parts(),
            db_pool_min=pool_min,
            db_pool_max=pool_max,
            db_connect_timeout=_env_int("DB_CONNECT_TIMEOUT", 5),
            db_statement_timeout_ms=_env_int("DB_STATEMENT_TIMEOUT_MS", 15000),
            db_acquire_timeout=_env_int("DB_ACQUIRE_TIMEOUT", 30),
            jwt_secret=jwt_secret,
            token_expiration_minutes=_env_int("TOKEN_EXPIRATION_MINUTES", 1440),
            cors_origins=_env_list("CORS_ORIGINS", ("*",)),
            port=_env_int("PORT", 3000),
            env=env,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
