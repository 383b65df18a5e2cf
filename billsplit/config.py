import os
from datetime import timedelta
from decimal import Decimal


def _env_list(name):
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Secret key for sessions / JWT
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret")

    # Database connection
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///billsplit.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.environ.get("JWT_ACCESS_TOKEN_HOURS", "12")))

    # CORS
    CORS_ALLOWED_ORIGINS = _env_list("CORS_ALLOWED_ORIGINS") or [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    API_PREFIX = "/api"
    JSON_SORT_KEYS = False

    # Mail API (Gmail REST)
    GMAIL_API_BASE_URL = os.environ.get("GMAIL_API_BASE_URL", "https://gmail.googleapis.com/gmail/v1")
    GMAIL_TIMEOUT_SECONDS = float(os.environ.get("GMAIL_TIMEOUT_SECONDS", "10"))
    GMAIL_MAX_RESULTS = int(os.environ.get("GMAIL_MAX_RESULTS", "50"))

    # Billing
    PAYMENT_MATCH_TOLERANCE = Decimal(os.environ.get("PAYMENT_MATCH_TOLERANCE", "0.01"))
    APP_DISPLAY_NAME = os.environ.get("APP_DISPLAY_NAME", "BillSplit")

    # Shared secret expected from the OAuth front end when it opens a session
    OAUTH_BRIDGE_KEY = os.environ.get("OAUTH_BRIDGE_KEY")

    @classmethod
    def validate(cls):
        pass


class ProductionConfig(Config):
    @classmethod
    def validate(cls):
        # SECRET_KEY and DATABASE_URL are REQUIRED in production
        if not os.environ.get("SECRET_KEY"):
            raise ValueError("SECRET_KEY environment variable must be set")
        if not os.environ.get("DATABASE_URL"):
            raise ValueError("DATABASE_URL environment variable must be set")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "WARNING"
    OAUTH_BRIDGE_KEY = None
