from __future__ import annotations

import re
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Database configuration read from environment variables (or .env).

    Either a full DATABASE_URL (any SQLAlchemy async URL, e.g. for tests) or the
    individual POSTGRES_* variables:
      - POSTGRES_USER
      - POSTGRES_PASSWORD
      - POSTGRES_DB
      - POSTGRES_HOST
      - POSTGRES_PORT
    """

    DATABASE_URL: Optional[str] = Field(
        default=None, description="If provided, full database connection URL."
    )
    POSTGRES_USER: Optional[str] = Field(default=None, description="DB username")
    POSTGRES_PASSWORD: Optional[str] = Field(default=None, description="DB password")
    POSTGRES_DB: Optional[str] = Field(default=None, description="Database name")
    POSTGRES_PORT: Optional[int] = Field(
        default=5432, description="Database port (default 5432)"
    )
    POSTGRES_HOST: Optional[str] = Field(
        default="localhost", description="Database host (default localhost)"
    )

    # SQLAlchemy engine options
    SQL_ECHO: bool = Field(
        default=False, description="Echo SQL statements for debugging (default False)"
    )
    DB_COMMAND_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Per-statement timeout passed to the asyncpg driver.",
    )
    DB_POOL_SIZE: int = Field(default=10, ge=1, description="Connection pool size")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """
        Base database URL. Prefers DATABASE_URL, otherwise builds a PostgreSQL
        URL from the individual POSTGRES_* variables.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if not all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            raise ValueError(
                "Database configuration missing. Ensure DATABASE_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD, and POSTGRES_DB are set in the environment."
            )
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT or 5432
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"

    @property
    def async_database_url(self) -> str:
        """Database URL with an async driver (asyncpg for PostgreSQL)."""
        url = self.database_url
        if url.startswith("postgresql+asyncpg://") or not url.startswith("postgresql"):
            return url
        return re.sub(r"^postgresql(\+\w+)?://", "postgresql+asyncpg://", url)

    @property
    def sync_database_url(self) -> str:
        """Driverless URL variant used by Alembic offline mode."""
        return re.sub(r"^postgresql\+\w+://", "postgresql://", self.database_url)

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith("postgresql")

    def engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for create_async_engine."""
        options: Dict[str, Any] = {"echo": self.SQL_ECHO, "pool_pre_ping": True}
        if self.is_postgres:
            options["pool_size"] = self.DB_POOL_SIZE
            options["connect_args"] = {"command_timeout": self.DB_COMMAND_TIMEOUT_SECONDS}
        return options


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return a database settings object populated from the environment."""
    return Settings()
