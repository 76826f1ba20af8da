# backend/poscore/config.py
from __future__ import annotations
import os
from decimal import Decimal


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the instance folder unless DATABASE_URL points at Postgres
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///poscore.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a SQLite writer waits on a locked database before OperationalError
    SQLITE_BUSY_TIMEOUT = int(os.environ.get("SQLITE_BUSY_TIMEOUT", "15"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Development only: include exception text in 500 responses
    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS", False)

    DEFAULT_OPENING_CASH = Decimal(os.environ.get("DEFAULT_OPENING_CASH", "200.00"))

    AUTH_TOKEN_TTL_HOURS = int(os.environ.get("AUTH_TOKEN_TTL_HOURS", "12"))
    AUTH_TOKEN_IDLE_MINUTES = int(os.environ.get("AUTH_TOKEN_IDLE_MINUTES", "120"))

    # Lower only in tests; bcrypt cost factor for operator passwords
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Browser origins allowed to call the API (comma separated)
    CORS_ORIGINS = frozenset(
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if o.strip()
    )
