# backend/sell/config.py
from __future__ import annotations
import os


def _db_timeout() -> int:
    return int(os.environ.get("DB_TIMEOUT_SECONDS", "5"))


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/sell.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///sell.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Lock wait bound for the settlement/basket transactions.
    # sqlite3 and psycopg both accept "timeout"/"connect_timeout" through connect_args;
    # sqlite3 uses it as the busy timeout.
    DB_TIMEOUT_SECONDS = _db_timeout()
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"timeout": DB_TIMEOUT_SECONDS}
        if SQLALCHEMY_DATABASE_URI.startswith("sqlite")
        else {"connect_timeout": DB_TIMEOUT_SECONDS},
    }

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = "DEBUG"
