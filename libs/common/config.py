from decimal import Decimal
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
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    # Placeholder secret keeps local/test runs working; deployments override via env.
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Money (all amounts in minor units of CURRENCY)
    CURRENCY: str = "KES"
    TAX_RATE: Decimal = Decimal("0.16")
    PLATFORM_COMMISSION_RATE: Decimal = Decimal("0.05")
    PAYMENT_PROCESSING_RATE: Decimal = Decimal("0.029")
    PAYMENT_PROCESSING_FIXED_FEE_CENTS: int = 3000

    # Which events create seller payouts
    SETTLEMENT_TRIGGER: Literal["escrow_release", "delivery", "both"] = "both"

    # Payment gateway
    PAYMENT_GATEWAY_URL: str = "http://payment-gateway:8010"
    PAYMENT_GATEWAY_SECRET_KEY: str = "test-gateway-key"
    PAYMENT_GATEWAY_WEBHOOK_SECRET: str = "test-webhook-secret"
    PAYMENT_GATEWAY_TIMEOUT: float = 15.0

    # Shipping
    SHIPPING_QUOTE_CACHE_SECONDS: int = 300

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
    def settles_on_release(self) -> bool:
        return self.SETTLEMENT_TRIGGER in ("escrow_release", "both")

    @property
    def settles_on_delivery(self) -> bool:
        return self.SETTLEMENT_TRIGGER in ("delivery", "both")


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
