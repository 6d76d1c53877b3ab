"""
Numeric telemetry field map for the history normalizer.

The backend sends every numeric field as either a number or a string, so
each one is coerced to float independently. What happens on a failed
coercion depends on the field's role:

- ``"total"`` fields feed sums and display tables and degrade to ``0.0``.
- ``"plot"`` fields feed the cluster scatter. A string is read up to the end
  of its leading number (``"20.5 C"`` is 20.5); with no leading number the
  value is kept as ``NaN`` so the join step can drop the record instead of
  plotting a fake zero.

Plot fields are also exposed under a short feature alias (``temperatura``,
``energia``) which is what the rendering layer plots.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_PLOT = "plot"
ROLE_TOTAL = "total"


@dataclass(frozen=True, slots=True)
class FieldDef:
    """Definition of a single numeric telemetry field.

    Attributes:
        name: Field name as sent by the backend.
        role: ``"plot"`` (coerce failures to NaN) or ``"total"`` (to 0.0).
        unit: Engineering unit string (e.g. ``"kWh"``, ``"EUR"``).
        alias: Feature name the coerced value is also stored under, or
            ``None`` when the field has no plotting alias.
    """

    name: str
    role: str
    unit: str
    alias: str | None = None

    def __post_init__(self) -> None:  # noqa: D105
        if self.role not in (ROLE_PLOT, ROLE_TOTAL):
            msg = f"Field '{self.name}': unsupported role '{self.role}'"
            raise ValueError(msg)


TELEMETRY_FIELDS: tuple[FieldDef, ...] = (
    FieldDef(name="temperature_c", role=ROLE_PLOT, unit="C", alias="temperatura"),
    FieldDef(name="energy_consumed_kwh", role=ROLE_PLOT, unit="kWh", alias="energia"),
    FieldDef(name="charging_rate_kw", role=ROLE_TOTAL, unit="kW"),
    FieldDef(name="charging_duration_hours", role=ROLE_TOTAL, unit="h"),
    FieldDef(name="charging_cost_eur", role=ROLE_TOTAL, unit="EUR"),
    FieldDef(name="battery_level_percent", role=ROLE_TOTAL, unit="%"),
)

FEATURE_FIELDS: tuple[str, ...] = tuple(
    f.alias for f in TELEMETRY_FIELDS if f.alias is not None
)
"""Feature aliases that must be finite for a record to join a cluster."""
