"""The published per-checkpoint status view."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from portpulse.models._base import Severity
from portpulse.models.checkpoint import Coordinate


class CheckpointView(BaseModel):
    """Display-ready status for one checkpoint.

    ``status`` and ``strictness_score`` are pure functions of the
    checkpoint's report aggregate and traffic sample for the cycle that
    built this view.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    location: str = ""
    status: Severity
    strictness_score: int = Field(ge=1, le=10)
    wait_time_minutes: int = 0
    report_count: int = 0
    last_updated: str = ""
    last_report_time: datetime | None = None
    coordinate: Coordinate | None = None
    traffic_status: Severity = Severity.GREEN
    traffic_description: str = ""
