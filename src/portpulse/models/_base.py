"""Base model and enum for store and traffic payloads.

Every wire model inherits from :class:`PortPulseBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase keys map to snake_case
  fields, while ``populate_by_name`` keeps accepting the snake_case
  column names the report store returns.
* A ``model_validator(mode="before")`` that strips sentinel values
  (``""``, ``"--"``, NaN, ``None``) so the field default is used.
* A ``raw`` dict that captures the original payload.

:class:`Severity` resolves any unrecognised value to ``UNKNOWN``
instead of raising ``ValueError``.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Sentinel strings treated as "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


class Severity(StrEnum):
    """Congestion color shared by crowd reports and traffic data."""

    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value: object) -> Severity:
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: Any, default: Severity | None = None) -> Severity:
        """Parse a wire value; ``None``/blank gives *default* (``GREEN`` unless set)."""
        if isinstance(value, Severity):
            return value
        if value is None or (isinstance(value, str) and value.strip() in _SENTINELS):
            return default if default is not None else cls.GREEN
        return cls(value)

    @property
    def weight(self) -> int:
        """Display priority: RED=3, YELLOW=2, GREEN=1, unknown=0."""
        return _SEVERITY_WEIGHT.get(self, 0)


_SEVERITY_WEIGHT: dict[Severity, int] = {
    Severity.RED: 3,
    Severity.YELLOW: 2,
    Severity.GREEN: 1,
}


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an ISO-8601 string or epoch (seconds **or** milliseconds) to a UTC datetime.

    Naive datetimes are assumed to be UTC. Returns ``None`` for missing or
    unparseable values.
    """
    if value is None:
        return None
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        ts = int(value)
        if ts >= _MS_THRESHOLD:
            ts = ts // 1000
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings and epoch ints to UTC datetimes."""


def coerce_id(value: Any) -> Any:
    """Store ids may be integers or UUID strings; always keep them as ``str``."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


class PortPulseBaseModel(BaseModel):
    """Base for store and traffic payload models.

    Handles:
    * camelCase → snake_case via ``alias_generator=to_camel``
    * sentinel values (``""``, ``"--"``, NaN) → dropped so the field
      default is used instead
    * Stashes the original payload dict in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip sentinel values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        original = dict(values)
        cleaned = PortPulseBaseModel._clean_dict(original)
        # Keep an explicit raw= from kwargs construction.
        if "raw" not in values:
            cleaned["raw"] = original
        return cleaned
