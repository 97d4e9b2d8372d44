import os


class Config:
    # Secret key for sessions
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod")

    # Database connection
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///leasebook.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Display defaults, overridden per owner by UserSettings
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "KES")
    DEFAULT_LOCALE = os.environ.get("DEFAULT_LOCALE", "en-KE")
    COMPANY_NAME = os.environ.get("COMPANY_NAME", "Leasebook")

    # Hosted model used for reminder emails and report narratives
    AI_API_KEY = os.environ.get("AI_API_KEY")
    AI_MODEL = os.environ.get("AI_MODEL", "gemini-1.5-flash")
    AI_API_URL = os.environ.get("AI_API_URL", "https://generativelanguage.googleapis.com/v1beta")
    AI_TIMEOUT = int(os.environ.get("AI_TIMEOUT", "30"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Seed an admin on first start (disabled in tests)
    SEED_ADMIN = os.environ.get("SEED_ADMIN", "true").lower() == "true"
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SEED_ADMIN = False
    AI_API_KEY = "test-key"
    LOG_LEVEL = "WARNING"
