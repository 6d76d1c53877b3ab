"""
Dashboard service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
list values (palette, CORS origins) are given as JSON arrays.

CHANGELOG:
- 2026-10-19: Add CLUSTER_PALETTE and CORS_ORIGINS (STORY-008)
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_CLUSTER_PALETTE: list[str] = [
    "#8884d8",
    "#82ca9d",
    "#ffc658",
    "#ff7300",
    "#d0ed57",
    "#a4de6c",
]
"""Six-colour palette; cluster labels wrap around it by modulo."""


class DashboardSettings(BaseSettings):
    """Dashboard service configuration.

    All values are loaded from environment variables. Every variable has a
    default suitable for a local backend on port 5000.

    Attributes:
        api_base_url: Base URL of the charging backend (http or https).
        poll_interval_s: Seconds between refresh cycles (min 1).
        request_timeout_s: Timeout per backend request in seconds.
        cluster_palette: Colours assigned to cluster labels by modulo.
        health_path: Health JSON file path. Empty disables the file.
        log_level: Root log level name.
        cors_origins: Origins allowed to call the read API.
    """

    api_base_url: str = "http://localhost:5000"
    poll_interval_s: int = 30
    request_timeout_s: float = 10.0
    cluster_palette: list[str] = DEFAULT_CLUSTER_PALETTE
    health_path: str = ""
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_must_be_http(cls, v: str) -> str:
        """Validate the backend URL scheme and drop any trailing slash."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"API_BASE_URL must start with http:// or https:// (got: '{v[:20]}')"
            )
        return v.rstrip("/")

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least one second."""
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float) -> float:
        """Validate request timeout is strictly positive."""
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    @field_validator("cluster_palette")
    @classmethod
    def cluster_palette_must_not_be_empty(cls, v: list[str]) -> list[str]:
        """Validate the palette has at least one colour (modulo divisor)."""
        if not v:
            raise ValueError("CLUSTER_PALETTE must contain at least one colour")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate the log level is a standard logging level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL '{v}' is not a known logging level")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
