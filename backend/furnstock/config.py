# backend/furnstock/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///furnstock.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Accounting outbox: drain queued postings right after each committed mutation
    ACCOUNTING_DISPATCH_ON_COMMIT = _env_flag("ACCOUNTING_DISPATCH_ON_COMMIT", True)
    # A posting that fails this many times is parked as FAILED
    ACCOUNTING_MAX_ATTEMPTS = int(os.environ.get("ACCOUNTING_MAX_ATTEMPTS", "5"))

    # One JSON file per company code lands here
    SNAPSHOT_DIR = os.environ.get("SNAPSHOT_DIR", "snapshots")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
