# backend/retoro/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retoro.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retoro.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "production" turns on secure cookies
    RETORO_ENV = os.environ.get("RETORO_ENV", "development")

    # Public base URL used to build magic links and OAuth redirects
    SITE_URL = os.environ.get("SITE_URL", "http://localhost:3000")

    # Shared secret for automation callers (X-API-Key header)
    RETORO_API_KEY = os.environ.get("RETORO_API_KEY")

    # Cookie names (Flask's own SESSION_COOKIE_NAME is left alone)
    AUTH_COOKIE_NAME = "retoro_session"
    ANONYMOUS_COOKIE_NAME = "retoro_anonymous_user_id"
    LEGACY_USER_COOKIE_NAME = "retoro_user_id"

    # Exchange rates
    EXCHANGE_RATE_API_URL = os.environ.get(
        "EXCHANGE_RATE_API_URL",
        "https://api.exchangerate-api.com/v4/latest",
    )
    EXCHANGE_RATE_TTL_SECONDS = int(os.environ.get("EXCHANGE_RATE_TTL_SECONDS", "3600"))
    EXCHANGE_RATE_TIMEOUT_SECONDS = float(os.environ.get("EXCHANGE_RATE_TIMEOUT_SECONDS", "5"))

    # Mailgun
    MAILGUN_API_KEY = os.environ.get("MAILGUN_API_KEY")
    MAILGUN_DOMAIN = os.environ.get("MAILGUN_DOMAIN")
    MAILGUN_URL = os.environ.get("MAILGUN_URL", "https://api.mailgun.net")
    SUPPORT_EMAIL = os.environ.get("SUPPORT_EMAIL", "support@retoro.app")

    # Google OAuth
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET")
