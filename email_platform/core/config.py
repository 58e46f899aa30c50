"""
Application configuration settings.
"""
import re
import secrets
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024 ** 2, "gb": 1024 ** 3}


def parse_size(value: str) -> int:
    """Convert a size string such as ``10mb`` or ``512kb`` into bytes."""
    match = re.fullmatch(r"\s*(\d+)\s*(b|kb|mb|gb)?\s*", value.lower())
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _SIZE_UNITS[unit or "b"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Email Platform API"
    APP_VERSION: str = "1.0.0"
    NODE_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    FRONTEND_URL: str = "http://localhost:5173"
    STATIC_DIR: str = "dist"

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "email_platform"
    DB_PASSWORD: str = ""
    DB_NAME: str = "email_platform"
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False
    DB_CREATE_TABLES: bool = True

    # Security
    JWT_SECRET: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 60 * 24 * 7
    SESSION_SECRET: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_MAX_REQUESTS: int = 1000
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Request limits
    MAX_FILE_SIZE: str = "10mb"

    @field_validator("MAX_FILE_SIZE")
    @classmethod
    def validate_max_file_size(cls, v: str) -> str:
        parse_size(v)
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def database_url(self) -> str:
        """Async database URL, built from the DB_* options unless DATABASE_URL is set."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def max_body_bytes(self) -> int:
        return parse_size(self.MAX_FILE_SIZE)

    @property
    def rate_limit(self) -> str:
        """Fixed-window limit in the ``limits`` notation, e.g. ``1000/900 second``."""
        window_seconds = max(1, self.RATE_LIMIT_WINDOW_MS // 1000)
        return f"{self.RATE_LIMIT_MAX_REQUESTS}/{window_seconds} second"

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Settings loaded from the process environment, cached for the process lifetime."""
    return Settings()
