"""
Pydantic models for reconciled dashboard data.

Defines the telemetry record after numeric coercion, the cluster assignment
row, the joined record, per-cluster statistics, the derived report views
and the DashboardSnapshot handed to the rendering layer.

Field names of records follow the backend's snake_case payload. Snapshot
level models serialize with the camelCase names the rendering layer reads
(``latestRecord``, ``avgTemp``, ``totalCost`` ...); they can be populated
by either name.

CHANGELOG:
- 2026-10-19: Reject boolean cluster rows, accept fractional float ids
- 2026-10-19: Add summary and stale source tracking to snapshot (STORY-006)
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TelemetryRecord(BaseModel):
    """A single charging session observation after numeric coercion.

    Plotting fields (``temperature_c``, ``energy_consumed_kwh`` and their
    aliases ``temperatura``, ``energia``) hold ``NaN`` when the backend value
    could not be coerced. Every other numeric field holds ``0.0`` instead.

    Attributes:
        id: Device/session identifier, used as the cluster join key.
        timestamp: Timestamp string exactly as sent by the backend.
        ts: Parsed timezone-aware timestamp, or ``None`` if unparsable.
        temperature_c: Ambient temperature in degrees Celsius.
        energy_consumed_kwh: Energy delivered in the session in kWh.
        charging_rate_kw: Average charging power in kW.
        charging_duration_hours: Session duration in hours.
        charging_cost_eur: Session cost in euro.
        battery_level_percent: Battery state of charge at observation time.
        temperatura: Scatter X feature (copy of ``temperature_c``).
        energia: Scatter Y feature (copy of ``energy_consumed_kwh``).
    """

    model_config = ConfigDict(frozen=True)

    id: int | str | None = None
    timestamp: str | None = None
    ts: datetime | None = None
    temperature_c: float = math.nan
    energy_consumed_kwh: float = math.nan
    charging_rate_kw: float = 0.0
    charging_duration_hours: float = 0.0
    charging_cost_eur: float = 0.0
    battery_level_percent: float = 0.0
    temperatura: float = math.nan
    energia: float = math.nan


class ClusterAssignment(BaseModel):
    """Maps a device/session identifier to its precomputed cluster label.

    ``device_id`` keeps the backend's own type (fractional floats included)
    so :func:`~dashboard.src.reconciler.normalize_id` decides the join key
    exactly as it does for history ids. Booleans are neither ids nor labels.
    """

    model_config = ConfigDict(frozen=True)

    device_id: int | float | str
    cluster: int = Field(ge=0)

    @field_validator("device_id", "cluster", mode="before")
    @classmethod
    def reject_booleans(cls, v: Any) -> Any:
        """Refuse JSON ``true``/``false`` before lax int coercion sees them."""
        if isinstance(v, bool):
            raise ValueError("booleans are not valid ids or cluster labels")
        return v


class MergedRecord(TelemetryRecord):
    """A TelemetryRecord joined with its cluster label.

    Only built when a cluster assignment exists for the record id and both
    feature fields are finite.
    """

    cluster: int


class ClusterStats(BaseModel):
    """Aggregate statistics for one cluster label.

    Attributes:
        cluster: The cluster label.
        count: Number of merged records carrying the label.
        avg_temp: Mean temperature, rounded to 1 decimal.
        avg_energy: Mean energy, rounded to 2 decimals.
        color: Palette colour resolved from the label.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cluster: int
    count: int
    avg_temp: float = Field(alias="avgTemp")
    avg_energy: float = Field(alias="avgEnergy")
    color: str = ""


class CostPoint(BaseModel):
    """One slice of the cost distribution chart."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float


class PerformancePoint(BaseModel):
    """One axis of the cluster performance radar chart.

    ``A`` is the average temperature and ``B`` the average energy scaled
    by :data:`~dashboard.src.reconciler.ENERGY_RADAR_SCALE` so both share
    one radial scale.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject: str
    a: float = Field(alias="A")
    b: float = Field(alias="B")


class DashboardReports(BaseModel):
    """Chart projections derived from history and cluster statistics."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    cost_distribution: list[CostPoint] = Field(default_factory=list)
    performance_data: list[PerformancePoint] = Field(default_factory=list)


class DashboardSummary(BaseModel):
    """Headline numbers shown by the summary cards."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    total_cost: float = 0.0
    avg_duration: float = 0.0
    avg_temperature: float = 0.0
    record_count: int = 0
    merged_count: int = 0
    cluster_count: int = 0


class DashboardSnapshot(BaseModel):
    """Complete reconciled state driving every presentation view.

    Attributes:
        latest_record: Most recent observation, or ``None``.
        history_records: All observations, ascending by timestamp.
        cluster_assignments: Validated cluster rows as last fetched.
        merged_records: History rows that joined a cluster label.
        cluster_stats: Per-label statistics keyed by ascending label.
        summary: Headline totals and averages.
        reports: Cost distribution and performance radar projections.
        fetch_timestamp: Last time at least one source updated.
        last_attempt_timestamp: Last time a refresh cycle finished.
        stale_sources: Sources whose most recent fetch failed.
        error_state: Banner text when the data is disconnected, else ``None``.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    latest_record: TelemetryRecord | None = None
    history_records: list[TelemetryRecord] = Field(default_factory=list)
    cluster_assignments: list[ClusterAssignment] = Field(default_factory=list)
    merged_records: list[MergedRecord] = Field(default_factory=list)
    cluster_stats: dict[int, ClusterStats] = Field(default_factory=dict)
    summary: DashboardSummary = Field(default_factory=DashboardSummary)
    reports: DashboardReports = Field(default_factory=DashboardReports)
    fetch_timestamp: datetime | None = None
    last_attempt_timestamp: datetime | None = None
    stale_sources: list[str] = Field(default_factory=list)
    error_state: str | None = None
