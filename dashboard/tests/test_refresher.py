"""
Unit tests for the refresh cycle and loop.

Tests verify:
- refresh_once() fetches every source and applies the results.
- A raising fetch is recorded as an error banner and never propagates.
- A cycle requested while one is in flight is skipped.
- The health file is written after each cycle; health errors are contained.
- run() stops on the shutdown event; cancellation releases the lock.

CHANGELOG:
- 2026-10-19: Initial creation -- TDD tests written first (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from dashboard.src.client import FetchResult
from dashboard.src.health import HealthWriter
from dashboard.src.refresher import Refresher
from dashboard.src.store import SnapshotStore

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def _results(raw_history: list[dict[str, Any]], raw_clusters: list[dict[str, Any]]):
    return {
        "latest": FetchResult.success("latest", None),
        "history": FetchResult.success("history", raw_history),
        "clusters": FetchResult.success("clusters", raw_clusters),
    }


@pytest.fixture()
def client(
    raw_history: list[dict[str, Any]], raw_clusters: list[dict[str, Any]]
) -> AsyncMock:
    """A DataSourceClient mock returning one successful cycle."""
    mock = AsyncMock()
    mock.fetch_all = AsyncMock(return_value=_results(raw_history, raw_clusters))
    return mock


# ---------------------------------------------------------------------------
# refresh_once
# ---------------------------------------------------------------------------


class TestRefreshOnce:
    """A single fetch-apply cycle."""

    @pytest.mark.asyncio
    async def test_fetches_and_applies(self, client: AsyncMock) -> None:
        store = SnapshotStore()
        refresher = Refresher(client=client, store=store, clock=lambda: NOW)

        ran = await refresher.refresh_once()

        assert ran is True
        client.fetch_all.assert_awaited_once()
        assert len(store.snapshot.history_records) == 3
        assert len(store.snapshot.merged_records) == 2
        assert store.snapshot.fetch_timestamp == NOW

    @pytest.mark.asyncio
    async def test_fetch_exception_is_recorded_not_raised(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = AsyncMock()
        client.fetch_all = AsyncMock(side_effect=RuntimeError("boom"))
        store = SnapshotStore()
        refresher = Refresher(client=client, store=store, clock=lambda: NOW)

        ran = await refresher.refresh_once()

        assert ran is True
        assert store.snapshot.error_state == "Refresh failed: boom"
        assert store.snapshot.last_attempt_timestamp == NOW
        assert "Refresh cycle error" in caplog.text

    @pytest.mark.asyncio
    async def test_overlapping_cycle_is_skipped(self, client: AsyncMock) -> None:
        release = asyncio.Event()
        results = client.fetch_all.return_value

        async def _slow_fetch() -> dict[str, FetchResult]:
            await release.wait()
            return results

        client.fetch_all = AsyncMock(side_effect=_slow_fetch)
        refresher = Refresher(client=client, store=SnapshotStore())

        first = asyncio.create_task(refresher.refresh_once())
        while not refresher.in_flight:
            await asyncio.sleep(0)

        assert await refresher.refresh_once() is False

        release.set()
        assert await first is True
        assert client.fetch_all.await_count == 1
        assert refresher.in_flight is False

    @pytest.mark.asyncio
    async def test_writes_health_file(self, client: AsyncMock, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        refresher = Refresher(
            client=client,
            store=SnapshotStore(),
            health=HealthWriter(health_path),
            clock=lambda: NOW,
        )

        await refresher.refresh_once()

        data = json.loads(health_path.read_text())
        assert data["history_count"] == 3
        assert data["merged_count"] == 2
        assert data["last_success_ts"] == NOW.isoformat()
        assert data["error_state"] is None

    @pytest.mark.asyncio
    async def test_health_write_failure_is_contained(
        self, client: AsyncMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        health = MagicMock()
        health.record_snapshot.side_effect = OSError("read-only filesystem")
        refresher = Refresher(client=client, store=SnapshotStore(), health=health)

        assert await refresher.refresh_once() is True
        assert "Failed to write health file" in caplog.text


# ---------------------------------------------------------------------------
# run loop
# ---------------------------------------------------------------------------


class TestRunLoop:
    """The periodic loop and its shutdown."""

    @pytest.mark.asyncio
    async def test_runs_until_shutdown(self, client: AsyncMock) -> None:
        shutdown_event = asyncio.Event()
        refresher = Refresher(client=client, store=SnapshotStore())

        async def _fetch_then_stop() -> dict[str, FetchResult]:
            if client.fetch_all.await_count >= 3:
                shutdown_event.set()
            return {}

        client.fetch_all = AsyncMock(side_effect=_fetch_then_stop)

        await asyncio.wait_for(
            refresher.run(interval_s=0.01, shutdown_event=shutdown_event),
            timeout=5,
        )

        assert client.fetch_all.await_count == 3

    @pytest.mark.asyncio
    async def test_initial_false_waits_one_interval(self, client: AsyncMock) -> None:
        shutdown_event = asyncio.Event()
        refresher = Refresher(client=client, store=SnapshotStore())

        task = asyncio.create_task(
            refresher.run(interval_s=60, shutdown_event=shutdown_event, initial=False)
        )
        await asyncio.sleep(0.05)
        shutdown_event.set()
        await asyncio.wait_for(task, timeout=5)

        client.fetch_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_abandons_in_flight_fetch(self, client: AsyncMock) -> None:
        started = asyncio.Event()

        async def _hang() -> dict[str, FetchResult]:
            started.set()
            await asyncio.sleep(3600)
            return {}

        client.fetch_all = AsyncMock(side_effect=_hang)
        store = SnapshotStore()
        before = store.snapshot
        refresher = Refresher(client=client, store=store)

        task = asyncio.create_task(
            refresher.run(interval_s=60, shutdown_event=asyncio.Event())
        )
        await asyncio.wait_for(started.wait(), timeout=5)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        store.close()

        assert store.snapshot is before
        assert refresher.in_flight is False
