# backend/frosty/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/frosty.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///frosty.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cookie carrying the opaque session token (Flask's own SESSION_COOKIE_* is unused)
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "frosty_session")
    SESSION_LIFETIME_HOURS = int(os.environ.get("SESSION_LIFETIME_HOURS", "24"))
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", False)

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # UK VAT applied to every invoice subtotal
    VAT_RATE = os.environ.get("VAT_RATE", "0.20")

    # "coerce" repairs bad quantities/prices, "strict" rejects them
    LINE_ITEM_POLICY = os.environ.get("LINE_ITEM_POLICY", "coerce")

    MAIL_SERVER = os.environ.get("MAIL_SERVER", "smtp.ethereal.email")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get(
        "MAIL_DEFAULT_SENDER",
        "Frosty's Ice Blasting Solutions <invoices@frostys.com>",
    )

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
