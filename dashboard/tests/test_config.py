"""
Unit tests for dashboard service configuration (DashboardSettings).

Tests verify:
- Config loads from environment variables with correct defaults.
- API_BASE_URL must be http(s); a trailing slash is dropped.
- Numeric constraints are enforced (poll interval, request timeout).
- CLUSTER_PALETTE and CORS_ORIGINS are parsed from JSON arrays.
- LOG_LEVEL is validated and upper-cased.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

import pytest
from dashboard.src.config import DEFAULT_CLUSTER_PALETTE, DashboardSettings
from pydantic import ValidationError


class TestDashboardSettingsLoadsFromEnv:
    """Config loads all values from environment variables."""

    def test_loads_all_env_vars(self, env_vars_full: dict[str, str]) -> None:
        settings = DashboardSettings()

        assert settings.api_base_url == "https://charging.example.com"
        assert settings.poll_interval_s == 15
        assert settings.request_timeout_s == 2.5
        assert settings.cluster_palette == ["#111111", "#222222", "#333333"]
        assert settings.health_path == env_vars_full["HEALTH_PATH"]
        assert settings.log_level == "DEBUG"
        assert settings.cors_origins == ["https://dashboard.example.com"]

    def test_defaults_applied_when_env_empty(self) -> None:
        settings = DashboardSettings()

        assert settings.api_base_url == "http://localhost:5000"
        assert settings.poll_interval_s == 30
        assert settings.request_timeout_s == 10.0
        assert settings.cluster_palette == DEFAULT_CLUSTER_PALETTE
        assert settings.health_path == ""
        assert settings.log_level == "INFO"
        assert settings.cors_origins == ["http://localhost:3000"]


class TestDashboardSettingsValidation:
    """Invalid values are rejected at startup."""

    @pytest.mark.parametrize("url", ["ftp://backend", "localhost:5000", ""])
    def test_api_base_url_must_be_http(
        self, monkeypatch: pytest.MonkeyPatch, url: str
    ) -> None:
        monkeypatch.setenv("API_BASE_URL", url)
        with pytest.raises(ValidationError, match="API_BASE_URL"):
            DashboardSettings()

    def test_api_base_url_accepts_uppercase_scheme(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("API_BASE_URL", "HTTP://backend:5000/")
        assert DashboardSettings().api_base_url == "HTTP://backend:5000"

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_poll_interval_must_be_positive(
        self, monkeypatch: pytest.MonkeyPatch, value: str
    ) -> None:
        monkeypatch.setenv("POLL_INTERVAL_S", value)
        with pytest.raises(ValidationError, match="POLL_INTERVAL_S"):
            DashboardSettings()

    def test_poll_interval_minimum_accepted(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("POLL_INTERVAL_S", "1")
        assert DashboardSettings().poll_interval_s == 1

    def test_request_timeout_must_be_positive(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("REQUEST_TIMEOUT_S", "0")
        with pytest.raises(ValidationError, match="REQUEST_TIMEOUT_S"):
            DashboardSettings()

    def test_empty_palette_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLUSTER_PALETTE", "[]")
        with pytest.raises(ValidationError, match="CLUSTER_PALETTE"):
            DashboardSettings()

    def test_unknown_log_level_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            DashboardSettings()

    def test_non_numeric_poll_interval_rejected(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("POLL_INTERVAL_S", "often")
        with pytest.raises(ValidationError) as exc_info:
            DashboardSettings()
        assert "poll_interval_s" in str(exc_info.value).lower()
