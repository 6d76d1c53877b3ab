"""
Health file writer for the dashboard service.

Writes a JSON health file at a configurable path with five fields:
- last_attempt_ts: ISO timestamp of the most recent refresh cycle.
- last_success_ts: ISO timestamp of the last cycle where any source updated.
- history_count: Number of history records in the current snapshot.
- merged_count: Number of records that joined a cluster label.
- error_state: Current banner text, or null when connected.

The file is rewritten on every refresh, providing a simple liveness signal
that Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from dashboard.src.models import DashboardSnapshot


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class HealthWriter:
    """Writes dashboard health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_attempt_ts: str | None = None
        self._last_success_ts: str | None = None
        self._history_count: int = 0
        self._merged_count: int = 0
        self._error_state: str | None = None

    def record_snapshot(self, snapshot: DashboardSnapshot) -> None:
        """Copy health fields from *snapshot* and write the health file."""
        self._last_attempt_ts = _iso(snapshot.last_attempt_timestamp)
        self._last_success_ts = _iso(snapshot.fetch_timestamp)
        self._history_count = len(snapshot.history_records)
        self._merged_count = len(snapshot.merged_records)
        self._error_state = snapshot.error_state
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_attempt_ts": self._last_attempt_ts,
            "last_success_ts": self._last_success_ts,
            "history_count": self._history_count,
            "merged_count": self._merged_count,
            "error_state": self._error_state,
        }
        self.path.write_text(json.dumps(data))
