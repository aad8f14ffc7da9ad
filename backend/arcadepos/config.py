# backend/arcadepos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/arcadepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///arcadepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Fallback until a rate is recorded in exchange_rates
    EXCHANGE_RATE_USD_TO_LBP = int(os.environ.get("EXCHANGE_RATE_USD_TO_LBP", "89500"))
    DEFAULT_HOURLY_RATE_USD = os.environ.get("DEFAULT_HOURLY_RATE_USD", "2")

    # 0 keeps zero-length sessions free of charge
    MIN_BILLABLE_MINUTES = int(os.environ.get("MIN_BILLABLE_MINUTES", "0"))
