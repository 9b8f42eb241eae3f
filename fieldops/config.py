"""
Field Operations Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'fieldops_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,   # recycle connections every 5 min
        "pool_timeout": 20,    # wait max 20s for a connection from pool
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Sessions (JWT_SECRET_KEY falls back to SECRET_KEY when unset)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    SESSION_TOKEN_TTL = int(os.getenv("SESSION_TOKEN_TTL", str(12 * 3600)))  # one shift

    # Uploads: blade photos and certification scans
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))
    DOCUMENT_STORAGE_DIR = os.getenv(
        "DOCUMENT_STORAGE_DIR", os.path.join(basedir, "instance", "documents")
    )

    # Letterhead printed on every generated PDF
    COMPANY_NAME = os.getenv("COMPANY_NAME", "Field Operations Concrete Cutting")
    COMPANY_ADDRESS = os.getenv("COMPANY_ADDRESS", "")
    COMPANY_PHONE = os.getenv("COMPANY_PHONE", "")

    # Cost / profitability inputs (placeholders; set per deployment)
    COST_BASE_HOURLY_RATE = os.getenv("COST_BASE_HOURLY_RATE", "75.00")
    COST_STANDBY_HOURLY_RATE = os.getenv("COST_STANDBY_HOURLY_RATE", "189.00")
    COST_STANDBY_MINIMUM_HOURS = os.getenv("COST_STANDBY_MINIMUM_HOURS", "0")
    COST_OVERHEAD_PERCENT = os.getenv("COST_OVERHEAD_PERCENT", "10")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # "json" or "text"; unset picks json in production, text elsewhere
    LOG_FORMAT = os.getenv("LOG_FORMAT")

    # Per-user request limits, Flask-Limiter syntax
    RATELIMIT_WRITE = os.getenv("RATELIMIT_WRITE", "60/minute")
    RATELIMIT_READ = os.getenv("RATELIMIT_READ", "200/minute")
    RATELIMIT_SESSIONS = os.getenv("RATELIMIT_SESSIONS", "20/minute")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )
    # Auth disabled by default in development for convenience
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SECRET_KEY = "testing-secret-key-not-for-production-use"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    # Role checks are part of the behaviour under test
    API_AUTH_ENABLED = "true"
    RATELIMIT_ENABLED = False
    COST_BASE_HOURLY_RATE = "75.00"
    COST_STANDBY_HOURLY_RATE = "150.00"
    COST_STANDBY_MINIMUM_HOURS = "0"
    COST_OVERHEAD_PERCENT = "10"


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    # Override engine options with PostgreSQL statement timeout
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
