from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    One configuration surface for storage, SSL and static assets.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration - required from .env
    DATABASE_URL: str

    # PostgreSQL sslmode; falls back to "require" in production, "disable" otherwise
    DB_SSL_MODE: Optional[str] = None

    # Upper bound for a single storage operation, in seconds
    DB_TIMEOUT_SECONDS: float = 5.0

    ENVIRONMENT: str = "development"

    LOG_LEVEL: str = "INFO"

    # Static asset base path, mounted under /static when present
    STATIC_DIR: str = "public"

    SEED_ON_STARTUP: bool = True

    # Use the first X-Forwarded-For entry as the voter identity
    TRUST_FORWARDED_FOR: bool = True

    @field_validator("DATABASE_URL")
    @classmethod
    def normalize_postgres_scheme(cls, v: str) -> str:
        """Hosted providers hand out postgres:// URLs, SQLAlchemy wants postgresql://."""
        if v.startswith("postgres://"):
            return "postgresql://" + v[len("postgres://"):]
        return v

    @property
    def ssl_mode(self) -> str:
        if self.DB_SSL_MODE:
            return self.DB_SSL_MODE
        return "require" if self.ENVIRONMENT.lower() == "production" else "disable"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
