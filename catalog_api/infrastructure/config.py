"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

import socket

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Host identity, resolved once at startup
    hostname: str = Field(default_factory=socket.gethostname)

    # Database
    database_url: str = "postgresql+asyncpg://catalog:catalog_dev_password@db:5432/catalog"
    create_schema_on_startup: bool = False
    seed_sample_data: bool = False

    # Batch export
    batch_chunk_size: int = Field(default=100, ge=1, le=10_000)
    export_base_dir: str | None = None
    batch_execution_history: int = Field(default=100, ge=1)

    # Outbound HTTP
    external_api_url: str = "https://api.example.com"
    external_api_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
