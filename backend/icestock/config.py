# backend/icestock/config.py
from __future__ import annotations
import os


def _csv(value: str | None) -> set[str]:
    if not value:
        return set()
    return {part.strip() for part in value.split(",") if part.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/icestock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///icestock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor (tests lower this)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # One-time passcodes
    OTP_LENGTH = 6
    OTP_TTL_MINUTES = 10
    OTP_RESEND_COOLDOWN_SECONDS = 60

    # Mail: "smtp" sends through SMTP_*; "memory" keeps messages in an in-process outbox
    MAIL_BACKEND = os.environ.get("MAIL_BACKEND", "smtp")
    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASS = os.environ.get("SMTP_PASS")
    MAIL_FROM = os.environ.get("MAIL_FROM") or os.environ.get("SMTP_USER")
    APP_NAME = os.environ.get("APP_NAME", "IceCream Inventory")

    # Shared admin secret. Matching it is a superuser credential for partner management.
    ADMIN_ID = os.environ.get("ADMIN_ID")
    # Fallback admin email for partner listings when none is passed
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")

    # Image uploads
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    UPLOAD_BASE_URL = os.environ.get("UPLOAD_BASE_URL", "/uploads")
    UPLOAD_MAX_WIDTH = 1600
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    CORS_ALLOWED_ORIGINS = _csv(os.environ.get("CORS_ALLOWED_ORIGINS")) or {
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    }
