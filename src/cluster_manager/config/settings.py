"""Process settings read from the environment and `.env`.

Cluster behaviour lives in `ControlPlaneConfig`; these only cover how the
process runs: where the config file is, logging, and the HTTP listener.
"""

from __future__ import annotations

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Log level, format and optional file."""
    level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    format: str = Field(default="json", validation_alias="LOG_FORMAT")
    file_path: str = Field(default="", validation_alias="LOG_FILE")


class APISettings(BaseSettings):
    """HTTP listener and CORS."""
    host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    port: int = Field(default=8000, validation_alias="API_PORT")
    prefix: str = Field(default="/api/v1", validation_alias="API_PREFIX")
    reload: bool = Field(default=False, validation_alias="API_RELOAD")
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        validation_alias="API_ALLOWED_ORIGINS",
    )


class Settings(BaseSettings):
    """Top-level process settings."""
    config_path: str = Field(default="", validation_alias="CLUSTER_MANAGER_CONFIG")
    metrics_port: int = Field(default=0, validation_alias="METRICS_PORT")

    # Sub-settings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APISettings = Field(default_factory=APISettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )
