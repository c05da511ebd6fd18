from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "refurb"
    db_username: str = "refurb"
    db_password: str = "secret"
    db_pool_min_size: int = Field(default=1, ge=1)
    db_pool_max_size: int = Field(default=10, ge=1)

    storage_backend: Literal["postgres", "memory"] = "postgres"

    default_max_attempts: int = Field(default=2, ge=1)
    stats_timezone: str = "UTC"
    queue_preview_limit: int = Field(default=20, ge=1)

    step_catalog_path: str | None = None
