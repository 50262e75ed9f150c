# backend/barberdesk/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/barberdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///barberdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cancellations closer than this many minutes to the slot are "late"
    LATE_CANCELLATION_THRESHOLD_MINUTES = _int_env("LATE_CANCELLATION_THRESHOLD_MINUTES", 10)

    # Launch capacity shown on the landing page
    TOTAL_SPOTS = _int_env("TOTAL_SPOTS", 30)

    # Upper bound on how long the landing page may show a cached company count
    SCARCITY_CACHE_TTL_SECONDS = _int_env("SCARCITY_CACHE_TTL_SECONDS", 60)

    # Names used when the tenant resolver provisions on first login
    DEFAULT_COMPANY_NAME = os.environ.get("DEFAULT_COMPANY_NAME", "My Company")
    DEFAULT_UNIT_NAME = os.environ.get("DEFAULT_UNIT_NAME", "Main Barbershop")

    BARBER_INVITE_REDIRECT_URL = os.environ.get(
        "BARBER_INVITE_REDIRECT_URL",
        "http://localhost:5173/auth/barber",
    )

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]
