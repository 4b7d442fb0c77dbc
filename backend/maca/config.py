# backend/maca/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/maca.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///maca.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Warehouse name -> short code used in sale numbers (VEN-{code}-...)
    WAREHOUSES = {
        "San Francisco": "SF",
        "Centro": "CEN",
    }
    DEFAULT_WAREHOUSE = os.environ.get("MACA_DEFAULT_WAREHOUSE", "San Francisco")

    SESSION_TTL_HOURS = int(os.environ.get("MACA_SESSION_TTL_HOURS", "24"))

    # Retries applied by the HTTP layer when a write hits a concurrent update
    CONFLICT_RETRY_ATTEMPTS = int(os.environ.get("MACA_CONFLICT_RETRY_ATTEMPTS", "3"))

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }

    LOG_LEVEL = os.environ.get("MACA_LOG_LEVEL", "INFO")
