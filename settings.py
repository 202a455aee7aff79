# settings.py
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="postgresql://localhost:5432/partner_payouts")
    DB_POOL_MIN: int = Field(default=1, ge=1)
    DB_POOL_MAX: int = Field(default=10, ge=1)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100)

    # -----------------------
    # JWT (tokens are issued by the portal's auth service)
    # -----------------------
    JWT_SECRET: str = Field(default="dev-secret-change-me", min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=30, ge=1)

    # -----------------------
    # Payout policy
    # -----------------------
    PAYOUT_MIN_CENTS: int = Field(default=1000, ge=0)
    PAYOUT_PLATFORM_FEE_BPS: int = Field(default=100, ge=0, le=10000)  # 100 bps = 1%
    PAYOUT_GATEWAY_FEE_CENTS: int = Field(default=25, ge=0)
    PAYOUT_CURRENCY: str = "usd"

    # -----------------------
    # Gateway (Mode Switch)
    # -----------------------
    GATEWAY_MODE: Literal["sandbox", "live"] = "sandbox"
    GATEWAY_HTTP_TIMEOUT_S: float = 20.0

    STRIPE_API_BASE: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    # connected-account onboarding (portal pages the gateway sends partners back to)
    CONNECT_REFRESH_URL: str = "http://localhost:3000/dashboard/settings?tab=payments&refresh=true"
    CONNECT_RETURN_URL: str = "http://localhost:3000/dashboard/settings?tab=payments&success=true"
    CONNECT_COUNTRY: str = "US"

    # -----------------------
    # Transition retries (optimistic concurrency)
    # -----------------------
    TRANSITION_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    TRANSITION_BACKOFF_BASE_MS: int = Field(default=50, ge=0)
    TRANSITION_BACKOFF_MAX_MS: int = Field(default=800, ge=0)

    # -----------------------
    # Maintenance sweep
    # -----------------------
    PROCESSING_SLA_MINUTES: int = Field(default=3 * 24 * 60, ge=1)
    PROCESSED_EVENT_RETENTION_DAYS: int = Field(default=30, ge=1)
    RECEIPT_REPLAY_AFTER_SECONDS: int = Field(default=60, ge=0)
    SWEEP_BATCH_SIZE: int = Field(default=100, ge=1)
    SWEEP_INTERVAL_SECONDS: int = Field(default=300, ge=1)
    RECEIPT_REPLAY_MAX_ATTEMPTS: int = Field(default=5, ge=1)

    # -----------------------
    # Rate limiting
    # -----------------------
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PAYOUT_PER_MIN: int = Field(default=5, ge=1)

    # -----------------------
    # Notifications
    # -----------------------
    NOTIFY_WEBHOOK_URL: str = ""
    NOTIFY_HTTP_TIMEOUT_S: float = 5.0

    LOG_LEVEL: str = "INFO"


settings = Settings()
