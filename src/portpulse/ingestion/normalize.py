"""Normalization helpers.

Lenient parsing of numeric and text values from store rows and model output.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def non_negative_or_zero(value: Any) -> int | None:
    parsed = safe_int(value)
    if parsed is None:
        return None
    return 0 if parsed < 0 else parsed


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) a language model may wrap JSON in."""
    return text.replace("```json", "").replace("```", "").strip()
