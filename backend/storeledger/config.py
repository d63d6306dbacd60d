# backend/storeledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storeledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storeledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Threshold given to new tracked products when the payload omits one
    DEFAULT_LOW_STOCK_LIMIT = int(os.environ.get("DEFAULT_LOW_STOCK_LIMIT", "5"))

    DEFAULT_REFUND_METHOD = os.environ.get("DEFAULT_REFUND_METHOD", "cash")
