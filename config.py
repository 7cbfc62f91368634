"""Configuration for Clubhouse."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y"}


# Database (users + sessions collections)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'clubhouse.db'}",
)

# Sessions
SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me-in-production-use-long-random-string")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "clubhouse_session")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", "3600"))  # 1 hour
SESSION_COOKIE_SECURE = _parse_bool(os.getenv("SESSION_COOKIE_SECURE", "false"))

# Password hashing work factor
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# Initial admin bootstrap (seeded at startup when password and email are set)
INITIAL_ADMIN_USERNAME = os.getenv("INITIAL_ADMIN_USERNAME", "admin")
INITIAL_ADMIN_EMAIL = os.getenv("INITIAL_ADMIN_EMAIL", "")
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")


@dataclass(frozen=True)
class Settings:
    """Everything create_app needs. Build with load_settings() or directly in tests."""

    database_url: str = DATABASE_URL
    session_secret: str = SESSION_SECRET
    session_cookie_name: str = SESSION_COOKIE_NAME
    session_max_age: int = SESSION_MAX_AGE
    session_cookie_secure: bool = SESSION_COOKIE_SECURE
    initial_admin_username: str = INITIAL_ADMIN_USERNAME
    initial_admin_email: str = INITIAL_ADMIN_EMAIL
    initial_admin_password: str = INITIAL_ADMIN_PASSWORD


def load_settings() -> Settings:
    """Settings from the environment (and .env)."""
    return Settings()
