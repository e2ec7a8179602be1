# backend/parkbook/core/config.py
import logging
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import API_TITLE

logger = logging.getLogger(__name__)

_BACKEND_ROOT = Path(__file__).resolve().parents[2]
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    environment: Literal["development", "test", "production"] = Field(
        default="development", description="Deployment environment"
    )
    api_title: str = Field(default=API_TITLE, description="OpenAPI title")
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'parkbook.db'}",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
        description="SQLAlchemy database URL",
    )
    database_timeout_seconds: int = Field(
        default=15,
        ge=1,
        description="Statement/lock wait timeout applied to every connection",
    )

    payment_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("payment_webhook_secret", "PAYSTACK_SECRET_KEY"),
        description="Shared secret used to verify payment provider webhook signatures",
    )
    payment_signature_header: str = Field(
        default="x-paystack-signature",
        description="Request header carrying the provider HMAC-SHA512 signature",
    )
    payment_reference_prefix: str = Field(
        default="PAY", description="Prefix for generated payment references"
    )

    allocation_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Check-and-reserve attempts before surfacing a booking conflict",
    )
    allocation_retry_base_delay: float = Field(
        default=0.05,
        ge=0,
        description="Base backoff (seconds) between allocation attempts",
    )

    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if normalized not in _LOG_LEVELS:
            logger.warning("Invalid LOG_LEVEL=%s; defaulting to INFO", value)
            return "INFO"
        return normalized

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
