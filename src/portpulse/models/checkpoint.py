"""Checkpoint reference data and per-cycle report aggregates."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from portpulse.ingestion.normalize import non_negative_or_zero, safe_float
from portpulse.models._base import PortPulseBaseModel, Severity, Timestamp, coerce_id


class Coordinate(BaseModel):
    """WGS84 point."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class Checkpoint(PortPulseBaseModel):
    """A monitored border/customs control point.

    Parameters
    ----------
    id : str
        Store identifier.
    name : str
        Display name.
    location : str
        Sub-location label (terminal, lane, ...).
    coordinate : Coordinate or None
        Needed for traffic enrichment; accepted either nested or as
        top-level ``lat``/``lng`` keys.
    """

    id: str
    name: str = ""
    location: str = ""
    coordinate: Coordinate | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_lat_lng(cls, values: Any) -> Any:
        if not isinstance(values, dict) or values.get("coordinate") is not None:
            return values
        lat = safe_float(values.get("lat"))
        lng = safe_float(values.get("lng"))
        # 0/0 is what an unset numeric column looks like, not a real checkpoint.
        if lat is None or lng is None or (lat == 0 and lng == 0):
            return values
        # Out of range: keep the checkpoint, just without traffic enrichment.
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return values
        merged = dict(values)
        merged["coordinate"] = {"lat": lat, "lng": lng}
        return merged

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return coerce_id(value)


class ReportAggregate(PortPulseBaseModel):
    """Crowd report statistics for one checkpoint, recomputed every refresh.

    Absence of reports yields ``GREEN`` / 0 minutes / 0 reports.
    """

    checkpoint_id: str = Field(validation_alias=AliasChoices("checkpoint_id", "checkpointId", "id"))
    most_reported_status: Severity = Severity.GREEN
    avg_wait_time: int = 0
    report_count: int = 0
    last_report_time: Timestamp = None

    @field_validator("checkpoint_id", mode="before")
    @classmethod
    def _coerce_checkpoint_id(cls, value: Any) -> Any:
        return coerce_id(value)

    @field_validator("most_reported_status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Severity:
        return Severity.parse(value)

    @field_validator("avg_wait_time", mode="before")
    @classmethod
    def _coerce_wait(cls, value: Any) -> int:
        # Averages come back as numerics like "23.50"; round to whole minutes.
        parsed = safe_float(value)
        if parsed is None:
            return 0
        return non_negative_or_zero(round(parsed)) or 0

    @field_validator("report_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return non_negative_or_zero(value) or 0
