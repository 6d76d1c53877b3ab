"""
Periodic refresh cycle: fetch every source, then fold results into the store.

A single :class:`Refresher` owns an ``asyncio.Lock`` so that refresh cycles
never overlap. A cycle requested while another is in flight (for example a
manual ``POST /v1/refresh`` during a timer tick) is skipped, not queued.

Designed to be robust:

- Never crashes the refresh loop on any error.
- A cycle that raises is recorded on the snapshot as an error banner.
- Cancelling the loop task abandons any in-flight fetch.

CHANGELOG:
- 2026-10-19: Skip overlapping cycles instead of running them concurrently
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dashboard.src.client import DataSourceClient
    from dashboard.src.health import HealthWriter
    from dashboard.src.store import SnapshotStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Refresher:
    """Runs fetch-and-reconcile cycles, one at a time.

    Args:
        client: Fetches every backend source concurrently.
        store: Receives the fetch results.
        health: HealthWriter instance, or None to skip health writes.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        *,
        client: DataSourceClient,
        store: SnapshotStore,
        health: HealthWriter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._store = store
        self._health = health
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        """Whether a refresh cycle is currently running."""
        return self._lock.locked()

    async def refresh_once(self) -> bool:
        """Execute a single fetch-apply cycle unless one is already running.

        Catches all exceptions so that the caller's loop is never broken.
        After each cycle the health writer is updated from the snapshot.

        Returns:
            True if a cycle ran, False if it was skipped.
        """
        if self._lock.locked():
            logger.info("Refresh already in flight, skipping")
            return False

        async with self._lock:
            try:
                results = await self._client.fetch_all()
                snapshot = self._store.apply(results, now=self._clock())
            except Exception as exc:
                logger.error("Refresh cycle error", exc_info=True)
                snapshot = self._store.mark_error(
                    f"Refresh failed: {exc}", now=self._clock()
                )

            if self._health is not None:
                try:
                    self._health.record_snapshot(snapshot)
                except Exception:
                    logger.warning("Failed to write health file", exc_info=True)

        return True

    async def run(
        self,
        *,
        interval_s: float,
        shutdown_event: asyncio.Event,
        initial: bool = True,
    ) -> None:
        """Run refresh cycles until shutdown_event is set.

        Args:
            interval_s: Seconds between the end of one cycle and the start
                of the next.
            shutdown_event: Event to signal graceful shutdown.
            initial: Refresh immediately. When False the first cycle runs
                after one interval.
        """
        logger.info("Refresh loop started (interval=%ss)", interval_s)
        skip = not initial
        while not shutdown_event.is_set():
            if skip:
                skip = False
            else:
                await self.refresh_once()
            # Use wait with timeout so we can check shutdown between sleeps
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(shutdown_event.wait(), timeout=interval_s)
        logger.info("Refresh loop stopped")
