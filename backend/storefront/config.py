# backend/storefront/config.py
from __future__ import annotations
import os


DEV_SIGNING_SECRET = "dev-signing-secret-change-me-before-deploying"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Signs session and supplier confirmation tokens (HS256)
    TOKEN_SIGNING_SECRET = os.environ.get("TOKEN_SIGNING_SECRET", DEV_SIGNING_SECRET)
    TOKEN_ISSUER = os.environ.get("TOKEN_ISSUER", "fashion-retail-store")

    # bcrypt cost factor; 12 is ~250ms on commodity hardware
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", False)

    LOCKOUT_MAX_ATTEMPTS = int(os.environ.get("LOCKOUT_MAX_ATTEMPTS", "5"))
    LOCKOUT_DURATION_MINUTES = int(os.environ.get("LOCKOUT_DURATION_MINUTES", "30"))

    REFERRAL_REWARD_POINTS = int(os.environ.get("REFERRAL_REWARD_POINTS", "40"))

    SUPPLIER_TOKEN_TTL_HOURS = int(os.environ.get("SUPPLIER_TOKEN_TTL_HOURS", "24"))
    SUPPLIER_TOKEN_RATE_LIMIT = int(os.environ.get("SUPPLIER_TOKEN_RATE_LIMIT", "5"))
    SUPPLIER_TOKEN_RATE_WINDOW_MINUTES = int(os.environ.get("SUPPLIER_TOKEN_RATE_WINDOW_MINUTES", "60"))
    SUPPLIER_CONFIRMATION_TIMEOUT_SECONDS = float(os.environ.get("SUPPLIER_CONFIRMATION_TIMEOUT_SECONDS", "5"))

    # Base URL used when building links that go out by email
    PUBLIC_URL = os.environ.get("PUBLIC_URL", "http://localhost:5173")

    # "smtp" delivers for real; "memory" keeps messages in an in-process outbox
    MAIL_BACKEND = os.environ.get("MAIL_BACKEND", "smtp")
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "no-reply@fashion-retail.local")
    MAIL_TIMEOUT_SECONDS = float(os.environ.get("MAIL_TIMEOUT_SECONDS", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
