"""Application configuration loaded from environment variables."""
from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings."""

    # Record store; empty keeps everything in memory
    DATA_FILE: Optional[str] = "db.json"
    SEED_DATA: bool = True

    # Wallet rules
    MIN_WITHDRAWAL_AMOUNT: Decimal = Field(default=Decimal("500"), gt=0)
    DEFAULT_PAYOUT_RATE: Decimal = Field(default=Decimal("0.8"), ge=0, le=1)

    # CORS - can be "*" for all origins or comma-separated list
    CORS_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator("DATA_FILE", mode="before")
    @classmethod
    def blank_means_memory(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def cors_origins(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
