"""
Configuration settings for sqlgate.

Uses Pydantic Settings to load environment variables for the database
connection, the connection pool, migrations and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_CLIENTS = ("pg", "postgres", "postgresql")


class Settings(BaseSettings):
    # Database
    db_client: str = Field("pg", alias="DB_CLIENT")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("postgres", alias="DB_NAME")
    db_ssl: bool = Field(False, alias="DB_SSL")
    db_sslmode: Optional[str] = Field(None, alias="DB_SSLMODE")
    db_statement_timeout_ms: int = Field(0, ge=0, alias="DB_STATEMENT_TIMEOUT_MS")

    # Pool
    db_pool_min: int = Field(2, ge=0, alias="DB_POOL_MIN")
    db_pool_max: int = Field(10, ge=1, alias="DB_POOL_MAX")
    db_pool_idle_timeout_ms: int = Field(30_000, gt=0, alias="DB_POOL_IDLE_TIMEOUT_MS")
    db_pool_acquire_timeout_ms: int = Field(30_000, gt=0, alias="DB_POOL_ACQUIRE_TIMEOUT_MS")

    # Startup probe
    db_connect_retries: int = Field(3, ge=1, alias="DB_CONNECT_RETRIES")
    db_connect_backoff_seconds: float = Field(1.0, ge=0, alias="DB_CONNECT_BACKOFF_SECONDS")

    # Migrations
    migrations_dir: str = Field("migrations", alias="MIGRATIONS_DIR")
    seeds_dir: str = Field("seeds", alias="SEEDS_DIR")
    migrations_table: str = Field("schema_migrations", alias="MIGRATIONS_TABLE")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("db_client")
    @classmethod
    def _check_client(cls, value: str) -> str:
        client = value.strip().lower()
        if client not in SUPPORTED_CLIENTS:
            raise ValueError(
                f"Unsupported DB_CLIENT '{value}'. Supported: {', '.join(SUPPORTED_CLIENTS)}"
            )
        return client

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "Settings":
        if self.db_pool_min > self.db_pool_max:
            raise ValueError(
                f"DB_POOL_MIN ({self.db_pool_min}) must not exceed DB_POOL_MAX ({self.db_pool_max})"
            )
        return self

    @property
    def effective_sslmode(self) -> Optional[str]:
        """sslmode passed to libpq; DB_SSL=true alone means 'require'."""
        if self.db_sslmode:
            return self.db_sslmode
        return "require" if self.db_ssl else None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings", "SUPPORTED_CLIENTS"]
