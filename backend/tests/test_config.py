"""Unit tests for settings normalisation and logging setup."""
import logging

from codemarket.config import Settings
from codemarket.logging_config import setup_logging


def test_database_url_uses_async_driver():
    cfg = Settings(DATABASE_URL="postgresql://user:pw@db:5432/codemarket?sslmode=require")

    assert cfg.DATABASE_URL == "postgresql+asyncpg://user:pw@db:5432/codemarket?ssl=require"


def test_sqlite_url_left_alone():
    cfg = Settings(DATABASE_URL="sqlite+aiosqlite:///./codemarket.db")

    assert cfg.DATABASE_URL == "sqlite+aiosqlite:///./codemarket.db"


def test_setup_logging_accepts_level_names():
    try:
        assert setup_logging("debug") == logging.DEBUG
        assert logging.getLogger("codemarket").level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.DEBUG
        # Client libraries stay at WARNING even when the app logs at DEBUG
        assert logging.getLogger("sqlalchemy").level == logging.WARNING
        assert logging.getLogger("stripe").level == logging.WARNING
    finally:
        setup_logging("INFO")


def test_setup_logging_unknown_level_falls_back_to_info():
    assert setup_logging("chatty") == logging.INFO
    assert setup_logging(logging.ERROR) == logging.ERROR
    assert logging.getLogger("httpx").level == logging.ERROR
    setup_logging("INFO")
