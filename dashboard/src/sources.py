"""
Backend data sources polled by the dashboard -- single source of truth.

Each source is one HTTP endpoint of the charging backend. The client issues
one GET per source per refresh cycle, and the store uses the source names
to decide which part of the snapshot a fetch result replaces.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------

KIND_OBJECT = "object"
"""Payload is a single JSON object, or empty when the backend has no data."""

KIND_LIST = "list"
"""Payload is a JSON array."""


@dataclass(frozen=True, slots=True)
class SourceDef:
    """Definition of a single backend endpoint.

    Attributes:
        name: Unique identifier used as dict key in fetch results.
        path: URL path relative to the backend base URL.
        kind: Expected payload shape -- ``"object"`` or ``"list"``.
        description: Free-text description of the endpoint.
    """

    name: str
    path: str
    kind: str
    description: str = ""

    def __post_init__(self) -> None:  # noqa: D105
        if self.kind not in (KIND_OBJECT, KIND_LIST):
            msg = f"Source '{self.name}': unsupported kind '{self.kind}'"
            raise ValueError(msg)


LATEST = SourceDef(
    name="latest",
    path="/api/latest",
    kind=KIND_OBJECT,
    description="Most recent charging observation",
)

HISTORY = SourceDef(
    name="history",
    path="/api/history",
    kind=KIND_LIST,
    description="Unordered list of charging observations",
)

CLUSTERS = SourceDef(
    name="clusters",
    path="/api/clusters",
    kind=KIND_LIST,
    description="Unordered list of {device_id, cluster} assignments",
)

ALL_SOURCES: tuple[SourceDef, ...] = (LATEST, HISTORY, CLUSTERS)
"""Every source polled in one refresh cycle, in fetch order."""

SOURCE_NAMES: frozenset[str] = frozenset(s.name for s in ALL_SOURCES)
