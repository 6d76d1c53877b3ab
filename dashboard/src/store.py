"""
Snapshot store holding the latest reconciled dashboard state.

The store is the only place the DashboardSnapshot changes. Fetch results go
in through :meth:`SnapshotStore.apply`; the store normalizes each successful
payload, keeps the previous value of every source that failed, recomputes
all derived views with the reconciler, swaps the snapshot in one assignment
and notifies subscribers.

Partial failure semantics:

- A failed source keeps its previous data and is listed in ``stale_sources``.
- ``fetch_timestamp`` only advances when at least one source succeeded.
- ``error_state`` is set only when every source failed, or when the refresh
  cycle itself raised (:meth:`SnapshotStore.mark_error`).

After :meth:`SnapshotStore.close` every write is ignored, so a fetch that
completes after teardown cannot touch the snapshot.

CHANGELOG:
- 2026-10-19: Ignore writes after close (STORY-007)
- 2026-10-19: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime

from dashboard.src.client import FetchResult
from dashboard.src.config import DEFAULT_CLUSTER_PALETTE
from dashboard.src.models import DashboardSnapshot
from dashboard.src.reconciler import (
    normalize_history,
    normalize_latest,
    parse_cluster_assignments,
    reconcile,
)
from dashboard.src.sources import CLUSTERS, HISTORY, LATEST, SOURCE_NAMES

logger = logging.getLogger(__name__)

Subscriber = Callable[[DashboardSnapshot], None]


class SnapshotStore:
    """In-memory holder of the current DashboardSnapshot.

    Args:
        palette: Colours assigned to cluster labels by modulo.
    """

    def __init__(self, palette: Sequence[str] = DEFAULT_CLUSTER_PALETTE) -> None:
        if not palette:
            raise ValueError("palette must contain at least one colour")
        self._palette = list(palette)
        self._snapshot = DashboardSnapshot()
        self._subscribers: list[Subscriber] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> DashboardSnapshot:
        """The current snapshot. Never mutated; replaced on every write."""
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* to receive every new snapshot.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def apply(
        self,
        results: Mapping[str, FetchResult] | Iterable[FetchResult],
        *,
        now: datetime,
    ) -> DashboardSnapshot:
        """Fold one refresh cycle's fetch results into a new snapshot.

        Args:
            results: Fetch results keyed by source name, or a plain
                iterable of results.
            now: Completion time of the refresh cycle.

        Returns:
            The new snapshot, or the unchanged one if the store is closed.
        """
        if self._closed:
            logger.debug("Store closed, ignoring fetch results")
            return self._snapshot

        if isinstance(results, Mapping):
            results = results.values()

        current = self._snapshot
        latest = current.latest_record
        history = current.history_records
        assignments = current.cluster_assignments
        updated: list[str] = []
        stale: list[str] = []

        for result in results:
            if result.source not in SOURCE_NAMES:
                logger.warning("Ignoring result for unknown source '%s'", result.source)
                continue
            if not result.ok:
                stale.append(result.source)
                continue

            if result.source == LATEST.name:
                latest = normalize_latest(result.data)
            elif result.source == HISTORY.name:
                history = normalize_history(result.data)
            elif result.source == CLUSTERS.name:
                assignments = parse_cluster_assignments(result.data)
            updated.append(result.source)

        error_state = None
        if not updated:
            error_state = (
                f"All data sources unavailable ({', '.join(sorted(stale))})"
                if stale
                else "No data sources were fetched"
            )

        data = reconcile(
            latest_record=latest,
            history_records=history,
            cluster_assignments=assignments,
            palette=self._palette,
        )
        snapshot = data.model_copy(
            update={
                "fetch_timestamp": now if updated else current.fetch_timestamp,
                "last_attempt_timestamp": now,
                "stale_sources": sorted(stale),
                "error_state": error_state,
            }
        )
        self._commit(snapshot)

        if stale:
            logger.warning(
                "Snapshot updated from %s; stale: %s",
                ", ".join(updated) or "nothing",
                ", ".join(sorted(stale)),
            )
        else:
            logger.info(
                "Snapshot updated: %d history, %d merged, %d cluster(s)",
                len(snapshot.history_records),
                len(snapshot.merged_records),
                len(snapshot.cluster_stats),
            )
        return snapshot

    def mark_error(self, message: str, *, now: datetime) -> DashboardSnapshot:
        """Record a refresh cycle failure while keeping all data.

        Args:
            message: Banner text shown by the rendering layer.
            now: Time the failure was observed.
        """
        if self._closed:
            logger.debug("Store closed, ignoring error '%s'", message)
            return self._snapshot

        snapshot = self._snapshot.model_copy(
            update={"error_state": message, "last_attempt_timestamp": now}
        )
        self._commit(snapshot)
        return snapshot

    def close(self) -> None:
        """Tear down the store: drop subscribers and ignore later writes."""
        self._closed = True
        self._subscribers.clear()
        logger.info("Snapshot store closed")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _commit(self, snapshot: DashboardSnapshot) -> None:
        """Replace the snapshot and notify every subscriber."""
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.warning("Snapshot subscriber raised", exc_info=True)
