from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    Database connectivity lives in carpet_inventory.db.config.Settings.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Carpet Inventory API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Inventory ledger for individually tracked carpets: unit lifecycle, "
            "order fulfillment, raw materials and purchase order deliveries."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed sample catalog data after migrations.",
    )

    # Request handling
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for handling a single HTTP request; exceeded requests get 504.",
    )

    # Domain tunables
    DEFAULT_DELIVERY_RATING: float = Field(
        default=8.0,
        ge=0,
        le=10,
        description="Rating applied to a supplier for a delivered purchase order when none is given.",
    )
    MAX_UNITS_PER_BATCH: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of individual units created by one production completion.",
    )
    SETTLEMENT_MAX_ATTEMPTS: int = Field(
        default=5,
        ge=1,
        description="Attempts after which a failed stock settlement is no longer retried automatically.",
    )

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """Return an AppSettings instance populated from environment variables."""
    return AppSettings()
