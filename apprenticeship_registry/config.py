"""
Apprenticeship Registry
Configuration classes, selected by APP_ENV.

    development  local SQLite file (or DATABASE_URL), auth off by default
    testing      in-memory SQLite, auth/rate limits off, no inline delivery
    production   DATABASE_URL + SECRET_KEY required, pooled engine
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name, default):
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


def _database_url(fallback=None):
    """DATABASE_URL with Heroku-style ``postgres://`` rewritten for SQLAlchemy 2."""
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url or fallback


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Flask-Limiter storage; memory:// is per-process
    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")

    # ── Telegram ─────────────────────────────────────────────────────────
    # Without BOT_TOKEN the gateway only logs messages
    BOT_TOKEN = os.getenv("BOT_TOKEN")
    TELEGRAM_API_URL = os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
    TELEGRAM_TIMEOUT = _env_int("TELEGRAM_TIMEOUT", 10)

    # Link in the confirmation message where students upload their report
    REPORT_UPLOAD_URL = os.getenv("REPORT_UPLOAD_URL", "https://auth.mkrit.ru")

    # ── Outbox ───────────────────────────────────────────────────────────
    NOTIFY_DELIVER_INLINE = _env_bool("NOTIFY_DELIVER_INLINE", "true")
    NOTIFY_MAX_ATTEMPTS = _env_int("NOTIFY_MAX_ATTEMPTS", 5)
    NOTIFY_RETRY_BASE_SECONDS = _env_int("NOTIFY_RETRY_BASE_SECONDS", 30)
    NOTIFY_BATCH_SIZE = _env_int("NOTIFY_BATCH_SIZE", 50)


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(basedir, 'instance', 'apprenticeship_dev.db')}"
    )
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False
    BOT_TOKEN = None
    NOTIFY_DELIVER_INLINE = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        missing = [name for name in ("DATABASE_URL", "SECRET_KEY") if not os.getenv(name)]
        if missing:
            raise RuntimeError(f"Production requires environment variables: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
