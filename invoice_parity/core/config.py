"""
Configuration management for the Invoice Parity service.

This module handles all application configuration using Pydantic settings.
Environment variables are loaded from .env file or system environment.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via environment
    variables prefixed with ``PARITY_``.
    """

    app_name: str = Field(default="Invoice Parity", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")

    # Document download
    document_base_url: Optional[str] = Field(
        default=None,
        description="Base URL that bare document references are joined onto"
    )
    download_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Wall-clock timeout for a single document download"
    )
    max_download_size_mb: float = Field(
        default=50,
        gt=0,
        description="Maximum document payload in MB"
    )

    # Comparison
    line_group_precision: float = Field(
        default=0.1,
        gt=0,
        description="Y rounding step used to group tokens into lines"
    )
    line_match_tolerance: float = Field(
        default=1.0,
        gt=0,
        description="Maximum Y distance between an old and a new line to pair them"
    )
    special_fields_file: Optional[str] = Field(
        default=None,
        description="JSON file with special field definitions (defaults built in)"
    )

    # Batch processing
    batch_concurrency: int = Field(default=5, ge=1, description="Comparisons in flight at once")
    batch_chunk_size: int = Field(default=10, ge=1, description="Records per progress report")

    # Storage
    data_dir: str = Field(default="./data", description="Root directory for stored state")
    status_flush_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Debounce window for job status snapshots"
    )
    job_retention_hours: float = Field(
        default=24,
        gt=0,
        description="Jobs older than this are evicted on startup"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json or text)")

    model_config = SettingsConfigDict(
        env_prefix="PARITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "text"]
        if v.lower() not in allowed:
            raise ValueError(f"Log format must be one of {allowed}")
        return v.lower()

    @field_validator("document_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @property
    def max_download_size_bytes(self) -> int:
        """Convert max download size from MB to bytes."""
        return int(self.max_download_size_mb * 1024 * 1024)

    @property
    def job_retention_seconds(self) -> float:
        return self.job_retention_hours * 3600

    @property
    def status_file(self) -> Path:
        """Location of the durable job status snapshot."""
        return Path(self.data_dir) / "jobs.json"

    @property
    def results_dir(self) -> Path:
        """Directory holding one JSON file per comparison outcome."""
        return Path(self.data_dir) / "results"

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        for directory in (self.data_dir, str(self.results_dir)):
            if directory and not os.path.exists(directory):
                os.makedirs(directory, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    This is the recommended way to access settings throughout the application.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
