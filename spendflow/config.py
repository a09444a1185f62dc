import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///spendflow.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = _env_flag("WTF_CSRF_ENABLED", "true")
    AUTO_CREATE_TABLES = _env_flag("AUTO_CREATE_TABLES", "true")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
    # Approver used when no approval rule matches an expense.
    DEFAULT_APPROVER_ROLE = os.environ.get("DEFAULT_APPROVER_ROLE", "Manager")
    DECISION_MAX_ATTEMPTS = int(os.environ.get("DECISION_MAX_ATTEMPTS", 3))

    NOTIFY_BY_EMAIL = _env_flag("NOTIFY_BY_EMAIL")
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "no-reply@spendflow.local")


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite://")
    WTF_CSRF_ENABLED = False
    NOTIFY_BY_EMAIL = False
    MAIL_SUPPRESS_SEND = True
    AUTO_CREATE_TABLES = True


class ProductionConfig(Config):
    AUTO_CREATE_TABLES = _env_flag("AUTO_CREATE_TABLES")


config_by_name = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}
