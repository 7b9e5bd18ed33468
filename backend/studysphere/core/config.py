# backend/studysphere/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PaymentMode = Literal["development", "test", "live"]


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the StudySphere API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field(default="development", alias="ENVIRONMENT")
    database_url: str = Field(default="sqlite:///./studysphere.db", alias="DATABASE_URL")

    # Auth
    secret_key: SecretStr = Field(
        default=SecretStr("studysphere-dev-secret-change-me"), alias="SECRET_KEY"
    )
    algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Payments
    payment_mode: PaymentMode = Field(default="development", alias="PAYMENT_MODE")
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: SecretStr = Field(default=SecretStr(""), alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        alias="RAZORPAY_WEBHOOK_SECRET",
        description="Webhook signing secret; falls back to the key secret when empty",
    )
    razorpay_base_url: str = Field(default="https://api.razorpay.com/v1", alias="RAZORPAY_BASE_URL")
    payment_gateway_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="PAYMENT_GATEWAY_TIMEOUT_SECONDS"
    )
    platform_fee_percent: float = Field(default=0.0, ge=0, le=100, alias="PLATFORM_FEE_PERCENT")
    payment_currency: str = Field(default="INR", alias="PAYMENT_CURRENCY")

    # Session requests
    session_request_expiry_hours: int = Field(default=48, ge=1, alias="SESSION_REQUEST_EXPIRY_HOURS")
    duplicate_request_window_minutes: int = Field(
        default=60, ge=0, alias="DUPLICATE_REQUEST_WINDOW_MINUTES"
    )

    # Availability slots (display only)
    availability_day_start_hour: int = Field(default=9, ge=0, le=23, alias="AVAILABILITY_DAY_START_HOUR")
    availability_day_end_hour: int = Field(default=18, ge=1, le=24, alias="AVAILABILITY_DAY_END_HOUR")
    default_timezone: str = Field(default="Asia/Kolkata", alias="DEFAULT_TIMEZONE")

    # Classroom
    classroom_early_join_minutes: int = Field(default=15, ge=0, alias="CLASSROOM_EARLY_JOIN_MINUTES")
    classroom_join_grace_minutes: int = Field(default=30, ge=0, alias="CLASSROOM_JOIN_GRACE_MINUTES")
    meeting_domain: str = Field(default="meet.jit.si", alias="MEETING_DOMAIN")

    @field_validator("payment_mode", mode="before")
    @classmethod
    def _normalize_payment_mode(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def webhook_secret_value(self) -> str:
        """Secret used to sign gateway webhooks."""
        secret = self.razorpay_webhook_secret.get_secret_value()
        return secret or self.razorpay_key_secret.get_secret_value()

    @property
    def gateway_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret.get_secret_value())

    def get_database_url(self) -> str:
        return self.database_url


settings = Settings()
