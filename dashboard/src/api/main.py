"""
FastAPI application entry point for the dashboard read API.

The application lifespan owns the whole refresh pipeline: it builds the
DataSourceClient, SnapshotStore and Refresher from DashboardSettings, runs
one refresh before serving so the first request already sees data, then
keeps a periodic refresh task running. On shutdown the task is cancelled
(abandoning any in-flight fetch) and the store is closed so a late fetch
cannot write into it.

Serve with any ASGI server, e.g. ``uvicorn dashboard.src.api.main:app``.

CHANGELOG:
- 2026-10-19: Run an initial refresh before accepting requests
- 2026-10-19: Register snapshot router (STORY-011)
- 2026-10-19: Initial creation (STORY-011)
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dashboard.src.api.health import router as health_router
from dashboard.src.api.snapshot import router as snapshot_router
from dashboard.src.client import DataSourceClient
from dashboard.src.config import DashboardSettings
from dashboard.src.health import HealthWriter
from dashboard.src.refresher import Refresher
from dashboard.src.store import SnapshotStore

logger = logging.getLogger(__name__)


def create_app(
    settings: DashboardSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Service configuration. Loaded from the environment when
            omitted.
        transport: Optional httpx transport for the backend client, used by
            tests to stand in for the charging backend.

    Returns:
        FastAPI: The configured application.
    """
    if settings is None:
        settings = DashboardSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan: start the refresh pipeline, stop it on exit."""
        client = DataSourceClient(
            base_url=settings.api_base_url,
            timeout_s=settings.request_timeout_s,
            transport=transport,
        )
        store = SnapshotStore(settings.cluster_palette)
        health = HealthWriter(settings.health_path) if settings.health_path else None
        refresher = Refresher(client=client, store=store, health=health)

        app.state.settings = settings
        app.state.store = store
        app.state.refresher = refresher

        await refresher.refresh_once()

        shutdown_event = asyncio.Event()
        task = asyncio.create_task(
            refresher.run(
                interval_s=settings.poll_interval_s,
                shutdown_event=shutdown_event,
                initial=False,
            )
        )
        logger.info("Dashboard API ready (backend=%s)", settings.api_base_url)
        yield

        logger.info("Dashboard API shutting down")
        shutdown_event.set()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        store.close()

    app = FastAPI(
        title="EV Charging Dashboard API",
        description="Reconciled charging telemetry and cluster views.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health_router)
    app.include_router(snapshot_router)

    @app.get("/")
    async def root() -> dict:
        """Root health check endpoint.

        Returns:
            dict: JSON object with application status.
        """
        return {"status": "ok"}

    return app


app = create_app()
