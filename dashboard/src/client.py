"""
Async HTTP client for the charging backend's three data sources.

Fetches ``/api/latest``, ``/api/history`` and ``/api/clusters`` concurrently
(one task per endpoint, joined with ``asyncio.gather``) and wraps each
outcome in a :class:`FetchResult`. Designed so that one failing endpoint
never affects the others:

- Network errors, timeouts, non-2xx statuses, undecodable JSON and payloads
  of the wrong shape all become ``FetchResult.failure``.
- Logs warnings on errors but never propagates exceptions to the caller.
- An empty ``/api/latest`` response is a success carrying ``None``.

CHANGELOG:
- 2026-10-19: Count consecutive cycles where every source failed
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from dashboard.src.sources import ALL_SOURCES, KIND_LIST, SourceDef

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S: float = 10.0
"""Timeout per backend request in seconds."""


# ---------------------------------------------------------------------------
# Tagged fetch outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of fetching a single source.

    Attributes:
        source: Name of the :class:`~dashboard.src.sources.SourceDef`.
        ok: ``True`` when *data* holds a decoded, shape-checked payload.
        data: Decoded JSON payload on success, ``None`` on failure.
        error: Short failure description, ``None`` on success.
    """

    source: str
    ok: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def success(cls, source: str, data: Any) -> FetchResult:
        return cls(source=source, ok=True, data=data)

    @classmethod
    def failure(cls, source: str, error: str) -> FetchResult:
        return cls(source=source, ok=False, error=error)


# ---------------------------------------------------------------------------
# Single-source fetch
# ---------------------------------------------------------------------------


async def fetch_source(client: httpx.AsyncClient, source: SourceDef) -> FetchResult:
    """GET one source and return its tagged result.

    Never raises except for task cancellation.

    Args:
        client: An open ``httpx.AsyncClient`` whose ``base_url`` points at
            the backend.
        source: The endpoint to fetch.

    Returns:
        ``FetchResult.success`` with the decoded payload, or
        ``FetchResult.failure`` describing what went wrong.
    """
    try:
        response = await client.get(source.path)
    except httpx.HTTPError as exc:
        logger.warning("Fetch '%s' failed (network error): %s", source.name, exc)
        return FetchResult.failure(source.name, f"network error: {exc}")
    except Exception:
        logger.warning(
            "Unexpected error fetching '%s' from %s",
            source.name,
            source.path,
            exc_info=True,
        )
        return FetchResult.failure(source.name, "unexpected error")

    if not response.is_success:
        logger.warning(
            "Fetch '%s' failed (HTTP %d)", source.name, response.status_code
        )
        return FetchResult.failure(source.name, f"HTTP {response.status_code}")

    return _decode(source, response)


def _decode(source: SourceDef, response: httpx.Response) -> FetchResult:
    """Decode and shape-check a successful response body."""
    if not response.content.strip():
        data = None
    else:
        try:
            data = response.json()
        except ValueError:
            logger.warning("Fetch '%s' returned invalid JSON", source.name)
            return FetchResult.failure(source.name, "invalid JSON")

    if source.kind == KIND_LIST:
        if not isinstance(data, list):
            logger.warning(
                "Fetch '%s' expected a JSON array, got %s",
                source.name,
                type(data).__name__,
            )
            return FetchResult.failure(source.name, "expected a JSON array")
        return FetchResult.success(source.name, data)

    if data is None or data == {}:
        return FetchResult.success(source.name, None)
    if not isinstance(data, dict):
        logger.warning(
            "Fetch '%s' expected a JSON object, got %s",
            source.name,
            type(data).__name__,
        )
        return FetchResult.failure(source.name, "expected a JSON object")
    return FetchResult.success(source.name, data)


# ---------------------------------------------------------------------------
# Concurrent multi-source client
# ---------------------------------------------------------------------------


class DataSourceClient:
    """Concurrent fetcher for every backend source.

    Each :meth:`fetch_all` call opens one ``httpx.AsyncClient``, starts one
    task per source and waits for all of them. Individual failures are
    returned as results, never raised.

    Args:
        base_url: Backend base URL, e.g. ``http://localhost:5000``.
        timeout_s: Timeout per request in seconds.
        sources: Sources to fetch (default: all three).
        transport: Optional httpx transport, used by tests.

    Usage::

        client = DataSourceClient(base_url="http://localhost:5000")
        results = await client.fetch_all()
        if results["history"].ok:
            rows = results["history"].data
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        sources: Sequence[SourceDef] = ALL_SOURCES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._sources = tuple(sources)
        self._transport = transport
        self._consecutive_failures: int = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def consecutive_failures(self) -> int:
        """Number of consecutive cycles in which every source failed."""
        return self._consecutive_failures

    async def fetch_all(self) -> dict[str, FetchResult]:
        """Fetch every source concurrently.

        Returns:
            Mapping of source name to its :class:`FetchResult`, one entry
            per configured source.
        """
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_s,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(
                *(fetch_source(client, source) for source in self._sources)
            )

        by_name = {result.source: result for result in results}

        if any(result.ok for result in results):
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1
            logger.warning(
                "All %d sources failed (consecutive failures: %d)",
                len(results),
                self._consecutive_failures,
            )
        return by_name
