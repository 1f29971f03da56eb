import os
from datetime import timedelta


def normalize_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def _optional_decimal_env(name, default):
    raw = os.getenv(name, default)
    if raw is None or str(raw).strip() == "":
        return None
    return str(raw).strip()


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-unsafe-key")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.getenv("DATABASE_URL", "sqlite:///instance/eventcrew.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.getenv("CACHE_DEFAULT_TIMEOUT", "120"))
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per day;80 per hour")
    LINK_RATE_LIMIT = os.getenv("LINK_RATE_LIMIT", "30 per minute")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
    PERMANENT_SESSION_LIFETIME = timedelta(days=int(os.getenv("SESSION_DAYS", "7")))
    REMEMBER_COOKIE_HTTPONLY = True

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    # Workflow settings, copied into WorkflowSettings at construction.
    SITE_URL = os.getenv("SITE_URL", "http://localhost:5000").rstrip("/")
    BUSINESS_EMAIL = os.getenv("BUSINESS_EMAIL", "bookings@example.com")
    MAIL_SENDER = os.getenv("MAIL_SENDER", "Bookings <notifications@example.com>")
    # Blank means "no deposit configured"; a quote sent without an explicit
    # percentage then carries no deposit and is never auto-approved.
    DEFAULT_DEPOSIT_PERCENT = _optional_decimal_env("DEFAULT_DEPOSIT_PERCENT", "50")
    REMINDER_LEAD_DAYS = int(os.getenv("REMINDER_LEAD_DAYS", "14"))

    # Collaborators
    COLLABORATOR_TIMEOUT = float(os.getenv("COLLABORATOR_TIMEOUT", "15"))
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
    GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")
    GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")
    CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "Pacific/Auckland")
    POLI_MERCHANT_CODE = os.getenv("POLI_MERCHANT_CODE")
    POLI_AUTH_CODE = os.getenv("POLI_AUTH_CODE")
    POLI_QUERY_URL = os.getenv(
        "POLI_QUERY_URL",
        "https://poliapi.apac.paywithpoli.com/api/v2/Transaction/GetTransaction",
    )
    POLI_INITIATE_URL = os.getenv(
        "POLI_INITIATE_URL",
        "https://poliapi.apac.paywithpoli.com/api/v2/Transaction/Initiate",
    )
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "NZD")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    TESTING = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CACHE_TYPE = "NullCache"
    SITE_URL = "http://testserver"
    BUSINESS_EMAIL = "office@example.com"
    DEFAULT_DEPOSIT_PERCENT = "50"
    SENTRY_DSN = None
    BCRYPT_LOG_ROUNDS = 4


config_by_env = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
