"""
Configuration settings for the Parley backend.
Uses pydantic-settings for environment variable support.
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional
import secrets
import os


def get_or_create_secret_key():
    """Get secret key from file or generate a new one."""
    secret_file = ".secret_key"
    if os.path.exists(secret_file):
        try:
            with open(secret_file, "r") as f:
                return f.read().strip()
        except OSError:
            pass

    key = secrets.token_urlsafe(32)
    try:
        with open(secret_file, "w") as f:
            f.write(key)
    except OSError:
        pass  # read-only fs, the key only lives for this process

    return key


class Settings(BaseSettings):
    """Application configuration settings."""

    # Application
    APP_NAME: str = "Parley"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    # resolved relative to this config file (backend/parley/config.py -> backend/parley.db)
    _BASE_DIR: str = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    DATABASE_URL: str = f"sqlite+aiosqlite:///{os.path.join(_BASE_DIR, 'parley.db')}"
    DATABASE_PATH: Optional[str] = None

    # Sessions and guest fingerprints
    SECRET_KEY: str = Field(default_factory=get_or_create_secret_key)
    SESSION_COOKIE_NAME: str = "session"
    SESSION_MAX_AGE_DAYS: int = 7
    SESSION_COOKIE_SECURE: bool = False
    # Only enable behind a proxy that sets X-Forwarded-For itself
    TRUST_FORWARDED_FOR: bool = False
    GUEST_MESSAGE_LIMIT: int = 10

    # AI providers (a provider is only enabled when its key is set)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_PROVIDER: str = "openai"
    PROVIDER_TIMEOUT_SECONDS: float = 600

    # Summaries
    SUMMARY_PROVIDER: str = "google"
    SUMMARY_MODEL: str = "gemini-2.5-flash-lite-preview-06-17"
    SUMMARY_MIN_LENGTH: int = 200

    # Threads
    THREAD_WRITE_RETRIES: int = 3

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    HOST_URL: str = "http://localhost:8000"
    PUBLIC_URL: Optional[str] = None

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def database_url(self) -> str:
        """DATABASE_PATH, when set, points the sqlite URL at that file."""
        if self.DATABASE_PATH:
            return f"sqlite+aiosqlite:///{self.DATABASE_PATH}"
        return self.DATABASE_URL

    @property
    def session_max_age(self) -> int:
        return self.SESSION_MAX_AGE_DAYS * 24 * 60 * 60


# Global settings instance
settings = Settings()
