"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets, tokens or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Bot"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # HTTP server (health + ledger listing)
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./ledger_bot.db"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Chat transport
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # AI classifier
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash-8b")
    GEMINI_BASE_URL: str = os.getenv(
        "GEMINI_BASE_URL",
        "https://generativelanguage.googleapis.com"
    )
    CLASSIFIER_TIMEOUT_SECONDS: float = float(
        os.getenv("CLASSIFIER_TIMEOUT_SECONDS", "25")
    )
    CONFIDENCE_THRESHOLD: float = float(
        os.getenv("CONFIDENCE_THRESHOLD", "0.6")
    )

    # Spreadsheet store
    GOOGLE_SERVICE_ACCOUNT_FILE: str = os.getenv(
        "GOOGLE_SERVICE_ACCOUNT_FILE", "service-account-key.json"
    )
    GOOGLE_DRIVE_FOLDER_ID: str = os.getenv("GOOGLE_DRIVE_FOLDER_ID", "")
    SHEET_LOCALE: str = os.getenv("SHEET_LOCALE", "en_US")
    SHEET_TIMEZONE: str = os.getenv("SHEET_TIMEZONE", "Asia/Kolkata")
    SHEET_SHARE_ROLE: str = os.getenv("SHEET_SHARE_ROLE", "writer")
    SHEETS_TIMEOUT_SECONDS: float = float(
        os.getenv("SHEETS_TIMEOUT_SECONDS", "20")
    )

    # Dialog
    LEDGER_PAGE_SIZE: int = int(os.getenv("LEDGER_PAGE_SIZE", "5"))
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₹")
    ORPHAN_GRACE_MINUTES: int = int(os.getenv("ORPHAN_GRACE_MINUTES", "30"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
