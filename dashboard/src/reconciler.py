"""
Pure reconciler that turns raw backend payloads into dashboard data.

Takes the history list and cluster list (as decoded from the backend JSON),
coerces numeric fields, sorts history by timestamp, joins cluster labels
onto history rows by id, aggregates per-cluster statistics and derives the
chart projections the rendering layer consumes.

Every function here is pure: no I/O, no clock, no module state. The same
inputs always produce the same outputs, so the store can recompute derived
views on every refresh without caching.

Coercion rules (see :mod:`dashboard.src.fields`):

- Plot fields (temperature, energy) read the leading number of a string
  (``"20.5 C"`` is 20.5) and become ``NaN`` when there is none; the record
  is later excluded from the join.
- Total fields (cost, duration, rate, battery level) become ``0.0``.
- Non-finite numbers and booleans count as unparsable.

Timestamps that cannot be parsed sort after every valid timestamp, keeping
their input order among themselves.

CHANGELOG:
- 2026-10-19: Plot fields read a leading number; accept RFC 1123 timestamps
- 2026-10-19: Add summarize() for headline totals (STORY-006)
- 2026-10-19: Sort unparsable timestamps last instead of leaving order undefined
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

from pydantic import ValidationError

from dashboard.src.config import DEFAULT_CLUSTER_PALETTE
from dashboard.src.fields import FEATURE_FIELDS, ROLE_PLOT, TELEMETRY_FIELDS
from dashboard.src.models import (
    ClusterAssignment,
    ClusterStats,
    CostPoint,
    DashboardReports,
    DashboardSnapshot,
    DashboardSummary,
    MergedRecord,
    PerformancePoint,
    TelemetryRecord,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COST_WINDOW: int = 5
"""Number of most recent history entries in the cost distribution."""

PERFORMANCE_WINDOW: int = 5
"""Maximum number of clusters plotted on the performance radar."""

ENERGY_RADAR_SCALE: float = 10.0
"""Factor applied to average energy so it shares the temperature axis."""

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def coerce_float(value: Any, default: float, *, leading: bool = False) -> float:
    """Convert a number-or-string backend value to a finite float.

    Returns *default* for ``None``, booleans, unparsable strings, other
    types, and values that parse to ``NaN`` or infinity.

    With *leading* set, a string only needs to start with a number: the
    longest numeric prefix is used and any trailing text (``"20.5 C"``) is
    ignored.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        if isinstance(value, (int, float)):
            result = float(value)
        elif isinstance(value, str):
            text = value.strip()
            if leading:
                match = _LEADING_NUMBER.match(text)
                if match is None:
                    return default
                text = match.group(0)
            result = float(text)
        else:
            return default
    except (ValueError, OverflowError):
        return default
    return result if math.isfinite(result) else default


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a backend timestamp into a timezone-aware datetime.

    Accepts ISO-8601 and, as a fallback, the RFC 1123 form Flask uses when
    it serializes datetimes (``"Mon, 01 Jan 2024 10:00:00 GMT"``). Naive
    timestamps are read as UTC. Returns ``None`` for anything else.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def normalize_id(value: Any) -> str | None:
    """Return the canonical string form of a join key.

    Numeric and string ids compare equal when they print the same:
    ``7``, ``7.0``, ``"7"`` and ``" 7 "`` all become ``"7"``. Returns
    ``None`` for missing, empty, boolean or non-finite ids.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    text = str(value).strip()
    return text or None


def cluster_color(label: int, palette: Sequence[str]) -> str:
    """Resolve the palette colour of a cluster label, wrapping by modulo."""
    if not palette:
        raise ValueError("palette must contain at least one colour")
    return palette[label % len(palette)]


def _coerce_id(value: Any) -> int | str | None:
    """Keep int and str ids as-is; fold everything else into one of them."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, str)):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return str(value)


def _normalize_row(row: Mapping[str, Any]) -> TelemetryRecord:
    """Coerce one raw history row into a TelemetryRecord."""
    values: dict[str, float] = {}
    for field_def in TELEMETRY_FIELDS:
        default = math.nan if field_def.role == ROLE_PLOT else 0.0
        value = coerce_float(
            row.get(field_def.name), default, leading=field_def.role == ROLE_PLOT
        )
        values[field_def.name] = value
        if field_def.alias is not None:
            values[field_def.alias] = value

    raw_ts = row.get("timestamp")
    return TelemetryRecord(
        id=_coerce_id(row.get("id")),
        timestamp=None if raw_ts is None else str(raw_ts),
        ts=parse_timestamp(raw_ts),
        **values,
    )


def _sort_key(record: TelemetryRecord) -> tuple[bool, float]:
    # Invalid timestamps sort last; sorted() keeps their relative order.
    if record.ts is None:
        return (True, 0.0)
    return (False, record.ts.timestamp())


# ---------------------------------------------------------------------------
# Public API: normalization and join
# ---------------------------------------------------------------------------


def normalize_latest(raw: Any) -> TelemetryRecord | None:
    """Coerce the ``/api/latest`` payload, or return ``None`` when empty."""
    if not isinstance(raw, Mapping) or not raw:
        return None
    return _normalize_row(raw)


def normalize_history(raw_history: Iterable[Any]) -> list[TelemetryRecord]:
    """Coerce raw history rows and sort them ascending by timestamp.

    The sort is stable: rows with equal timestamps keep their input order.
    Rows whose timestamp cannot be parsed go to the end, also in input
    order. Rows that are not JSON objects are skipped with a warning.

    Args:
        raw_history: Decoded ``/api/history`` payload.

    Returns:
        TelemetryRecords in non-decreasing timestamp order.
    """
    records: list[TelemetryRecord] = []
    for idx, row in enumerate(raw_history):
        if not isinstance(row, Mapping):
            logger.warning("History row %d is not an object, skipping: %r", idx, row)
            continue
        records.append(_normalize_row(row))

    invalid = sum(1 for r in records if r.ts is None)
    if invalid:
        logger.warning(
            "%d of %d history rows have an unparsable timestamp, sorting them last",
            invalid,
            len(records),
        )

    return sorted(records, key=_sort_key)


def parse_cluster_assignments(raw_clusters: Iterable[Any]) -> list[ClusterAssignment]:
    """Validate raw ``{device_id, cluster}`` rows, skipping invalid ones.

    Rows that are already :class:`ClusterAssignment` instances pass through.
    Input order is preserved so later duplicates still win when indexed.
    """
    assignments: list[ClusterAssignment] = []
    for idx, row in enumerate(raw_clusters):
        if isinstance(row, ClusterAssignment):
            assignments.append(row)
            continue
        if not isinstance(row, Mapping):
            logger.warning("Cluster row %d is not an object, skipping: %r", idx, row)
            continue
        try:
            assignments.append(ClusterAssignment.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "Cluster row %d is invalid, skipping (%d error(s)): %r",
                idx,
                exc.error_count(),
                row,
            )
    return assignments


def build_cluster_index(raw_clusters: Iterable[Any]) -> dict[str, int]:
    """Build a ``normalized id -> cluster label`` lookup.

    Later rows overwrite earlier rows for the same device id.

    Args:
        raw_clusters: Decoded ``/api/clusters`` payload, or validated
            :class:`ClusterAssignment` instances.

    Returns:
        Mapping from canonical string id to cluster label.
    """
    index: dict[str, int] = {}
    for assignment in parse_cluster_assignments(raw_clusters):
        key = normalize_id(assignment.device_id)
        if key is None:
            continue
        index[key] = assignment.cluster
    return index


def join(
    history: Iterable[TelemetryRecord],
    cluster_index: Mapping[str, int],
) -> list[MergedRecord]:
    """Attach cluster labels to history records.

    A record is kept only if its id is in *cluster_index* and both feature
    fields are finite. Everything else is dropped without error. Input
    order is preserved.
    """
    merged: list[MergedRecord] = []
    unmatched = 0
    invalid = 0

    for record in history:
        label = cluster_index.get(normalize_id(record.id))  # type: ignore[arg-type]
        if label is None:
            unmatched += 1
            continue
        if not all(math.isfinite(getattr(record, name)) for name in FEATURE_FIELDS):
            invalid += 1
            continue
        merged.append(MergedRecord(**record.model_dump(), cluster=label))

    if unmatched or invalid:
        logger.debug(
            "Join kept %d record(s); dropped %d without cluster, %d with invalid features",
            len(merged),
            unmatched,
            invalid,
        )
    return merged


# ---------------------------------------------------------------------------
# Public API: aggregates and projections
# ---------------------------------------------------------------------------


@dataclass
class _Accumulator:
    count: int = 0
    temp_sum: float = 0.0
    energy_sum: float = 0.0


def aggregate_by_cluster(
    merged: Iterable[MergedRecord],
    palette: Sequence[str] = DEFAULT_CLUSTER_PALETTE,
) -> dict[int, ClusterStats]:
    """Compute count and mean temperature/energy per cluster label.

    Single pass over *merged*. Returns an empty dict for empty input.
    Keys are ordered by ascending cluster label.
    """
    accumulators: dict[int, _Accumulator] = {}
    for record in merged:
        acc = accumulators.get(record.cluster)
        if acc is None:
            acc = accumulators[record.cluster] = _Accumulator()
        acc.count += 1
        acc.temp_sum += record.temperatura
        acc.energy_sum += record.energia

    return {
        label: ClusterStats(
            cluster=label,
            count=acc.count,
            avg_temp=round(acc.temp_sum / acc.count, 1),
            avg_energy=round(acc.energy_sum / acc.count, 2),
            color=cluster_color(label, palette),
        )
        for label, acc in sorted(accumulators.items())
    }


def _cost_label(record: TelemetryRecord) -> str:
    if record.ts is not None:
        return record.ts.strftime("%Y-%m-%d %H:%M")
    return record.timestamp or ""


def derive_reports(
    history: Sequence[TelemetryRecord],
    cluster_stats: Mapping[int, ClusterStats] | Sequence[ClusterStats],
) -> DashboardReports:
    """Build the cost distribution and performance radar projections.

    The cost distribution takes the last :data:`COST_WINDOW` history
    entries (history is already chronological). The radar takes the first
    :data:`PERFORMANCE_WINDOW` cluster stats, with ``A`` the average
    temperature and ``B`` the average energy times
    :data:`ENERGY_RADAR_SCALE`.
    """
    if isinstance(cluster_stats, Mapping):
        stats = list(cluster_stats.values())
    else:
        stats = list(cluster_stats)

    recent = list(history)[-COST_WINDOW:]
    return DashboardReports(
        cost_distribution=[
            CostPoint(name=_cost_label(r), value=r.charging_cost_eur) for r in recent
        ],
        performance_data=[
            PerformancePoint(
                subject=f"Cluster {s.cluster}",
                a=s.avg_temp,
                b=round(s.avg_energy * ENERGY_RADAR_SCALE, 1),
            )
            for s in stats[:PERFORMANCE_WINDOW]
        ],
    )


def summarize(
    history: Sequence[TelemetryRecord],
    merged: Sequence[MergedRecord],
    cluster_stats: Mapping[int, ClusterStats],
) -> DashboardSummary:
    """Compute the headline numbers shown by the summary cards.

    Averages fall back to ``0.0`` when there is nothing to average.
    """
    count = len(history)
    total_cost = sum(r.charging_cost_eur for r in history)
    avg_duration = (
        sum(r.charging_duration_hours for r in history) / count if count > 0 else 0.0
    )
    temps = [r.temperatura for r in history if math.isfinite(r.temperatura)]
    avg_temperature = sum(temps) / len(temps) if temps else 0.0

    return DashboardSummary(
        total_cost=round(total_cost, 2),
        avg_duration=round(avg_duration, 2),
        avg_temperature=round(avg_temperature, 1),
        record_count=count,
        merged_count=len(merged),
        cluster_count=len(cluster_stats),
    )


def reconcile(
    *,
    latest_record: TelemetryRecord | None,
    history_records: Sequence[TelemetryRecord],
    cluster_assignments: Sequence[ClusterAssignment],
    palette: Sequence[str] = DEFAULT_CLUSTER_PALETTE,
) -> DashboardSnapshot:
    """Run join, aggregation and projections over normalized inputs.

    Returns a snapshot with every data field set. Timestamps, stale
    sources and error state are left at their defaults for the caller.
    """
    index = build_cluster_index(cluster_assignments)
    merged = join(history_records, index)
    stats = aggregate_by_cluster(merged, palette)

    return DashboardSnapshot(
        latest_record=latest_record,
        history_records=list(history_records),
        cluster_assignments=list(cluster_assignments),
        merged_records=merged,
        cluster_stats=stats,
        summary=summarize(history_records, merged, stats),
        reports=derive_reports(history_records, stats),
    )
