"""Structured output of the luggage analysis (AI-vision) service."""

from __future__ import annotations

import json
import logging
from enum import StrEnum
from typing import Any

from pydantic import Field, ValidationError, field_validator

from portpulse.ingestion.normalize import safe_float, strip_code_fences
from portpulse.models._base import PortPulseBaseModel

_logger = logging.getLogger(__name__)


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def _missing_(cls, value: object) -> RiskLevel:
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.MEDIUM


class ScanResult(PortPulseBaseModel):
    """Sanitised analysis result.

    Every field has a safe default so a partially filled answer still
    renders: wrong types collapse to the default rather than failing.
    """

    risk_level: RiskLevel = RiskLevel.MEDIUM
    funny_message: str = "The AI is still thinking about life..."
    detected_items: list[str] = Field(default_factory=list)
    estimated_value: float = 0
    is_daigou_suspect: bool = False

    @field_validator("risk_level", mode="before")
    @classmethod
    def _coerce_risk(cls, value: Any) -> RiskLevel:
        return RiskLevel(value) if value is not None else RiskLevel.MEDIUM

    @field_validator("funny_message", mode="before")
    @classmethod
    def _coerce_message(cls, value: Any) -> str:
        return str(value)

    @field_validator("detected_items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value]

    @field_validator("estimated_value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> float:
        return safe_float(value) or 0

    @field_validator("is_daigou_suspect", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @classmethod
    def fallback(cls, message: str, detected: str = "Error") -> ScanResult:
        return cls(funny_message=message, detected_items=[detected], raw={})


def parse_scan_payload(payload: dict[str, Any]) -> ScanResult:
    """Validate a decoded answer; anything unusable gives a fallback result."""
    # ``raw`` is ours; a model answer must not supply it.
    cleaned = {key: value for key, value in payload.items() if key != "raw"}
    try:
        return ScanResult.model_validate(cleaned)
    except ValidationError:
        _logger.debug("Unusable scan payload", exc_info=True)
        return ScanResult.fallback("The AI returned an unexpected answer.", detected="Unknown")


def parse_scan_text(text: str) -> ScanResult:
    """Parse model output that should be JSON, possibly wrapped in code fences."""
    cleaned = strip_code_fences(text or "")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        _logger.debug("Scan output is not JSON: %s", cleaned[:128])
        return ScanResult.fallback(
            "The AI did not return standard data, but things look fine.",
            detected="Unknown",
        )
    if not isinstance(payload, dict):
        return ScanResult.fallback("The AI returned an unexpected answer.", detected="Unknown")
    return parse_scan_payload(payload)


class ScanProvider(StrEnum):
    GEMINI = "gemini"
    QWEN = "qwen"
    DEEPSEEK = "deepseek"
    DOUBAO = "doubao"
