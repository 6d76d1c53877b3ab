"""
Shared test fixtures for dashboard service tests.

Provides environment isolation for DashboardSettings, canned backend
payloads, and a factory for httpx MockTransports that stand in for the
charging backend.

CHANGELOG:
- 2026-10-19: Add backend transport factory (STORY-005)
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

# All DashboardSettings environment variable names, used for cleanup.
_ALL_DASHBOARD_ENV_VARS = (
    "API_BASE_URL",
    "POLL_INTERVAL_S",
    "REQUEST_TIMEOUT_S",
    "CLUSTER_PALETTE",
    "HEALTH_PATH",
    "LOG_LEVEL",
    "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_dashboard_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all dashboard env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_DASHBOARD_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every DashboardSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "API_BASE_URL": "https://charging.example.com/",
        "POLL_INTERVAL_S": "15",
        "REQUEST_TIMEOUT_S": "2.5",
        "CLUSTER_PALETTE": '["#111111", "#222222", "#333333"]',
        "HEALTH_PATH": "/tmp/dashboard-health.json",
        "LOG_LEVEL": "debug",
        "CORS_ORIGINS": '["https://dashboard.example.com"]',
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


# ---------------------------------------------------------------------------
# Canned backend payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def raw_latest() -> dict[str, Any]:
    return {
        "id": 2,
        "timestamp": "2024-01-01T11:00:00Z",
        "temperature_c": "22.5",
        "energy_consumed_kwh": "7.25",
        "charging_rate_kw": "11",
        "charging_duration_hours": "0.75",
        "charging_cost_eur": "3.10",
        "battery_level_percent": "80",
    }


@pytest.fixture()
def raw_history() -> list[dict[str, Any]]:
    """Two clean rows (out of order) and one with an unparsable temperature."""
    return [
        {
            "id": 2,
            "timestamp": "2024-01-01T11:00:00Z",
            "temperature_c": "22",
            "energy_consumed_kwh": "7",
            "charging_duration_hours": "3",
            "charging_cost_eur": "4",
        },
        {
            "id": 1,
            "timestamp": "2024-01-01T10:00:00Z",
            "temperature_c": "20",
            "energy_consumed_kwh": "5",
            "charging_duration_hours": "1",
            "charging_cost_eur": "2",
        },
        {
            "id": "3",
            "timestamp": "2024-01-01T12:00:00Z",
            "temperature_c": "abc",
            "energy_consumed_kwh": "6",
            "charging_duration_hours": "2",
            "charging_cost_eur": "1.5",
        },
    ]


@pytest.fixture()
def raw_clusters() -> list[dict[str, Any]]:
    return [
        {"device_id": 1, "cluster": 0},
        {"device_id": "2", "cluster": 1},
        {"device_id": 3, "cluster": 1},
    ]


# ---------------------------------------------------------------------------
# Backend stand-in
# ---------------------------------------------------------------------------

Route = Any
"""A payload to serve as JSON, an ``httpx.Response``, or an exception."""


@pytest.fixture()
def backend_transport() -> Callable[..., tuple[httpx.MockTransport, list[str]]]:
    """Return a factory building a MockTransport from a path -> route map.

    Each route value is served as follows:

    - ``httpx.Response``: returned as-is.
    - ``Exception`` subclass instance: raised (``httpx.RequestError``
      subclasses get the request attached).
    - anything else: JSON-encoded with status 200.

    Unknown paths return 404. The factory also returns the list of
    requested paths, appended in request order.
    """

    def _factory(routes: dict[str, Route]) -> tuple[httpx.MockTransport, list[str]]:
        calls: list[str] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if request.url.path not in routes:
                return httpx.Response(404)
            route = routes[request.url.path]
            if isinstance(route, httpx.RequestError):
                route.request = request
                raise route
            if isinstance(route, Exception):
                raise route
            if isinstance(route, httpx.Response):
                # Fresh copy so the same route can be served more than once.
                return httpx.Response(
                    route.status_code, content=route.content, headers=route.headers
                )
            return httpx.Response(200, content=json.dumps(route).encode())

        return httpx.MockTransport(_handler), calls

    return _factory
