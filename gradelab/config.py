# gradelab/config.py
import os


def _int_env(name, default):
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


class BaseConfig:
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://redis:6379/0")
    CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://redis:6379/0")

    # --- DB ---
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "postgresql+psycopg2://app_user:app_pass@db:5432/app_db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    # "*" or a comma-separated allow list
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
    # reverse proxies in front of the app whose X-Forwarded-For is trusted
    PROXY_FIX_X_FOR = _int_env("PROXY_FIX_X_FOR", 0)

    # --- Auth ---
    JWT_SECRET = os.environ.get("JWT_SECRET")
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_IN = _int_env("JWT_EXPIRES_IN", 7 * 24 * 60 * 60)

    # (max_attempts, window_seconds)
    LOGIN_RATE_LIMIT = (5, 15 * 60)
    REGISTER_RATE_LIMIT = (3, 60 * 60)

    # --- Pipeline ---
    SCANNER_WEBHOOK_URL = os.environ.get("SCANNER_WEBHOOK_URL")
    AI_ANALYSIS_WEBHOOK_URL = os.environ.get("AI_ANALYSIS_WEBHOOK_URL")
    DOWNSTREAM_TIMEOUT = float(os.environ.get("DOWNSTREAM_TIMEOUT", "10"))

    # --- Storage ---
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "/app/uploads")
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000")
    MAX_FILE_SIZE = 10 * 1024 * 1024
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE + 1024 * 1024
    ALLOWED_CONTENT_TYPES = (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "application/pdf",
    )

    REQUIRED_ENV_VARS = (
        "DATABASE_URL",
        "JWT_SECRET",
        "SCANNER_WEBHOOK_URL",
        "AI_ANALYSIS_WEBHOOK_URL",
        "CELERY_BROKER_URL",
    )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"
    JWT_SECRET = BaseConfig.JWT_SECRET or "dev-secret-change-me"


class ProductionConfig(BaseConfig):
    DEBUG = False
    ENV = "production"


class TestingConfig(BaseConfig):
    TESTING = True
    ENV = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET = "testing-secret"
    SCANNER_WEBHOOK_URL = "http://scanner.test/scan"
    AI_ANALYSIS_WEBHOOK_URL = "http://ai.test/analyze"
    DOWNSTREAM_TIMEOUT = 1.0
    PUBLIC_BASE_URL = "http://testserver"
