"""
Health check endpoint for the dashboard read API.

Provides a simple GET /health endpoint that returns {"status": "ok"} with
HTTP 200 while the process is serving. Backend connectivity is reported by
the snapshot's ``errorState``, not here, so a disconnected backend does not
make the container unhealthy.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Return a simple health status.

    Returns:
        dict: ``{"status": "ok"}`` indicating the service is alive.
    """
    return {"status": "ok"}
