from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Worker
    REDIS_URL: str = "redis://localhost:6379/0"

    # Admin auth. Placeholder keeps local/test runs from failing; real
    # deployments override via env.
    AUTH_JWT_SECRET: str = "test-jwt-secret"

    # Upstream fulfillment API
    UPSTREAM_API_URL: str = "https://api.platform.gold/public/v2"
    UPSTREAM_EMAIL: Optional[str] = None
    UPSTREAM_PASSWORD: Optional[str] = None
    UPSTREAM_QUOTE_MODE: bool = False
    UPSTREAM_REQUIRED_SHIPPING_INSTRUCTION: str = "Confidential Drop Ship to Customer"
    UPSTREAM_PAYMENT_METHOD_ID: Optional[int] = None
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0
    UPSTREAM_TOKEN_TTL_HOURS: int = 23  # real lifetime is 24h
    UPSTREAM_TRANSIENT_RETRIES: int = 2
    UPSTREAM_DEFAULT_COUNTRY: str = "US"

    # Reconciliation jobs
    ON_HOLD_STATUS: str = "On Hold - Contact Desk"
    STATUS_SYNC_BATCH_SIZE: int = 20
    STATUS_SYNC_DELAY_SECONDS: float = 0.5
    STATUS_SYNC_MIN_INTERVAL_SECONDS: int = 300
    REPAIR_DELAY_SECONDS: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def upstream_credentials_configured(self) -> bool:
        return bool(self.UPSTREAM_EMAIL and self.UPSTREAM_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
