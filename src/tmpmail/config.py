"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development. The protocol
    guards (idle timeout, data size, recipient count) are disabled unless
    set explicitly.

    Environment Variables:
        SMTP_HOST: Bind address for the mail listener
        SMTP_PORT: Listen port for the mail listener
        SMTP_BANNER: Server name used in greeting and EHLO replies
        SMTP_IDLE_TIMEOUT: Seconds without input before a connection is closed
        SMTP_MAX_DATA_BYTES: Maximum size of one message's DATA section
        SMTP_MAX_RECIPIENTS: Maximum RCPT commands per transaction
        MAIL_TTL_SECONDS: Lifetime of a stored message
        MAIL_DOMAIN: Domain used for generated disposable addresses
        LOG_LEVEL: Logging level (default INFO)
    """

    # Mail listener
    SMTP_HOST: str = "0.0.0.0"
    SMTP_PORT: int = 2525
    SMTP_BANNER: str = "Simple SMTP Server"
    SMTP_READ_CHUNK_SIZE: int = 1024

    # Hardening guards (None = no limit enforced)
    SMTP_IDLE_TIMEOUT: Optional[float] = None
    SMTP_MAX_DATA_BYTES: Optional[int] = None
    SMTP_MAX_RECIPIENTS: Optional[int] = None

    # Message store
    MAIL_TTL_SECONDS: float = 20 * 60
    STORE_SWEEP_INTERVAL_SECONDS: float = 60

    # Query API
    MAIL_DOMAIN: str = "mm.example.com"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    START_SMTP_WITH_API: bool = True
    CORS_ORIGINS: str = "*"

    # Application
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
