"""
Read endpoints exposing the reconciled dashboard snapshot.

These routes are the presentation boundary: the rendering layer polls them
instead of talking to the charging backend. Every handler reads the current
snapshot from the store on ``app.state``; none of them touch the backend
except ``POST /v1/refresh``.

Records can carry ``NaN`` in their plotting fields, which plain JSON cannot
represent, so record-bearing responses are serialized with pydantic
(``NaN`` becomes ``null``) instead of the default JSON encoder.

CHANGELOG:
- 2026-10-19: Add POST /v1/refresh (STORY-012)
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dashboard.src.refresher import Refresher
from dashboard.src.store import SnapshotStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["snapshot"])


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_store(request: Request) -> SnapshotStore:
    """Return the SnapshotStore created by the application lifespan."""
    return request.app.state.store


def _get_refresher(request: Request) -> Refresher:
    """Return the Refresher created by the application lifespan."""
    return request.app.state.refresher


StoreDep = Annotated[SnapshotStore, Depends(_get_store)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _model_response(model: BaseModel) -> Response:
    """Serialize a model with its aliases, mapping NaN floats to null."""
    return Response(
        content=model.model_dump_json(by_alias=True),
        media_type="application/json",
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/snapshot")
async def snapshot(store: StoreDep) -> Response:
    """Return the complete current DashboardSnapshot."""
    return _model_response(store.snapshot)


@router.get("/summary")
async def summary(store: StoreDep) -> dict:
    """Return the headline numbers plus connection status.

    Returns:
        dict: ``totalCost``, ``avgDuration``, ``avgTemperature``, record and
        cluster counts, ``fetchTimestamp``, ``errorState`` and
        ``staleSources``.
    """
    current = store.snapshot
    return {
        **current.summary.model_dump(by_alias=True),
        "fetchTimestamp": current.fetch_timestamp,
        "errorState": current.error_state,
        "staleSources": current.stale_sources,
    }


@router.get("/clusters")
async def clusters(store: StoreDep) -> list[dict]:
    """Return per-cluster statistics in ascending label order."""
    return [
        stats.model_dump(by_alias=True)
        for stats in store.snapshot.cluster_stats.values()
    ]


@router.get("/reports")
async def reports(store: StoreDep) -> dict:
    """Return the cost distribution and performance radar projections."""
    return store.snapshot.reports.model_dump(by_alias=True)


@router.get("/latest")
async def latest(store: StoreDep) -> Response:
    """Return the most recent observation.

    Raises:
        HTTPException: 404 if the backend has not provided one yet.
    """
    record = store.snapshot.latest_record
    if record is None:
        raise HTTPException(status_code=404, detail="No latest record available.")
    return _model_response(record)


@router.post("/refresh")
async def refresh(
    store: StoreDep,
    refresher: Annotated[Refresher, Depends(_get_refresher)],
) -> Response:
    """Run a refresh cycle now.

    Returns 200 with ``{"status": "refreshed"}`` once the cycle completed,
    or 202 with ``{"status": "skipped"}`` when a cycle was already running.
    """
    ran = await refresher.refresh_once()
    if not ran:
        return JSONResponse(status_code=202, content={"status": "skipped"})
    return JSONResponse(
        content={
            "status": "refreshed",
            "errorState": store.snapshot.error_state,
            "staleSources": store.snapshot.stale_sources,
        }
    )
