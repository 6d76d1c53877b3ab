"""
Headless daemon for the EV charging dashboard data service.

Runs the refresh loop on its own: every POLL_INTERVAL_S seconds the three
backend sources are fetched concurrently and folded into the snapshot
store. Each new snapshot is summarized in the log, and the health file is
rewritten after every cycle when HEALTH_PATH is set.

The loop is resilient: an exception in one cycle is logged and recorded on
the snapshot and does not stop the loop. Graceful shutdown on SIGTERM/SIGINT
sets a shared asyncio.Event so the loop finishes its current cycle and the
store is closed before exiting.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-19: Log a summary line for every snapshot via a store subscriber
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime

from dashboard.src.models import DashboardSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the dashboard service.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        level: Root log level name (e.g. ``"INFO"``, ``"DEBUG"``).
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup.

    Args:
        settings: A DashboardSettings instance (or any object with the same
            attrs).
    """
    logger.info(
        "Dashboard service starting with config: "
        "api_base_url=%s, poll_interval_s=%s, request_timeout_s=%s, "
        "palette_size=%d, health_path=%s, log_level=%s",
        settings.api_base_url,  # type: ignore[attr-defined]
        settings.poll_interval_s,  # type: ignore[attr-defined]
        settings.request_timeout_s,  # type: ignore[attr-defined]
        len(settings.cluster_palette),  # type: ignore[attr-defined]
        settings.health_path or "disabled",  # type: ignore[attr-defined]
        settings.log_level,  # type: ignore[attr-defined]
    )


def log_snapshot_summary(snapshot: DashboardSnapshot) -> None:
    """Log the headline numbers of a snapshot (store subscriber)."""
    summary = snapshot.summary
    if snapshot.error_state:
        logger.warning("Dashboard disconnected: %s", snapshot.error_state)
        return
    logger.info(
        "Dashboard snapshot: records=%d merged=%d clusters=%d "
        "total_cost=%.2f avg_duration=%.2f avg_temperature=%.1f",
        summary.record_count,
        summary.merged_count,
        summary.cluster_count,
        summary.total_cost,
        summary.avg_duration,
        summary.avg_temperature,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run the loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    from dashboard.src.client import DataSourceClient
    from dashboard.src.config import DashboardSettings
    from dashboard.src.health import HealthWriter
    from dashboard.src.refresher import Refresher
    from dashboard.src.store import SnapshotStore

    settings = DashboardSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    client = DataSourceClient(
        base_url=settings.api_base_url,
        timeout_s=settings.request_timeout_s,
    )
    store = SnapshotStore(settings.cluster_palette)
    store.subscribe(log_snapshot_summary)
    health = HealthWriter(settings.health_path) if settings.health_path else None
    refresher = Refresher(client=client, store=store, health=health)

    try:
        await refresher.run(
            interval_s=settings.poll_interval_s,
            shutdown_event=shutdown_event,
        )
    finally:
        store.close()
        logger.info("Shutdown complete")


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the dashboard daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
