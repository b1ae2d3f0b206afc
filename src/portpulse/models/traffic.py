"""Traffic samples and the payloads traffic sources return."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from portpulse.ingestion.normalize import safe_int
from portpulse.models._base import PortPulseBaseModel, Severity


class TrafficOutcome(StrEnum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"
    SKIPPED = "skipped-no-coordinate"


class TrafficSample(BaseModel):
    """Road traffic around one checkpoint for a single enrichment pass.

    Never cached beyond the cycle that produced it.
    """

    model_config = ConfigDict(frozen=True)

    checkpoint_id: str
    severity: Severity = Severity.GREEN
    description: str = ""
    outcome: TrafficOutcome = TrafficOutcome.OK

    @property
    def is_fallback(self) -> bool:
        return self.outcome in (TrafficOutcome.TIMEOUT, TrafficOutcome.ERROR)


class TrafficReading(PortPulseBaseModel):
    """Normalised body returned by the traffic proxy endpoint."""

    severity: Severity = Field(validation_alias=AliasChoices("trafficStatus", "traffic_status", "severity"))
    description: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Severity:
        severity = Severity.parse(value, default=Severity.UNKNOWN)
        if severity is Severity.UNKNOWN:
            raise ValueError(f"unrecognised traffic severity {value!r}")
        return severity


class BaiduRoad(PortPulseBaseModel):
    """One road segment from the Baidu rectangular traffic query.

    Baidu status codes: 0 unknown, 1 smooth, 2 slow, 3 congested,
    4 severely congested. Missing or zero is read as smooth.
    """

    road_name: str = ""
    status: int = 1

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> int:
        return safe_int(value) or 1


class BaiduTrafficResponse(PortPulseBaseModel):
    status: int
    message: str = ""
    road_traffic: list[BaiduRoad] = Field(default_factory=list)
