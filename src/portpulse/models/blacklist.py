"""Crowd-ranked blacklist of items confiscated today."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator

from portpulse.ingestion.normalize import non_negative_or_zero
from portpulse.models._base import PortPulseBaseModel, coerce_id


class BlacklistItem(PortPulseBaseModel):
    """A board entry; ``rank`` is recomputed locally from the count ordering."""

    id: str
    rank: int = 0
    name: str = ""
    category: str = ""
    reason: str = ""
    confiscated_count_today: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return coerce_id(value)

    @field_validator("confiscated_count_today", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return non_negative_or_zero(value) or 0
