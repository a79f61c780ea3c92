# Overview: Environment-driven configuration for the ShoePOS backend.

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///shoepos.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Printed on receipts
    STORE_NAME = os.environ.get("STORE_NAME", "POS Shoestore")
    STORE_ADDRESS = os.environ.get("STORE_ADDRESS", "123 Market Street, Springfield")
    STORE_PHONE = os.environ.get("STORE_PHONE", "(555) 123-4567")

    # Imports above this row count are queued and processed in the background
    IMPORT_QUEUE_THRESHOLD = _env_int("IMPORT_QUEUE_THRESHOLD", 1000)
    IMPORT_TASKS_INLINE = _env_flag("IMPORT_TASKS_INLINE")

    REPORT_CACHE_TTL_SECONDS = _env_int("REPORT_CACHE_TTL_SECONDS", 300)
    REPORT_DEFAULT_RANGE_DAYS = 30
    REPORT_DEFAULT_TOP_LIMIT = 10
    REPORT_MAX_TOP_LIMIT = 50
    LOW_STOCK_THRESHOLD = _env_int("LOW_STOCK_THRESHOLD", 5)

    SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 12)
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)
