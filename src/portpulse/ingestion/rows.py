"""Parse report store rows into typed models.

A malformed row is dropped (and logged) rather than failing the whole read,
so one bad checkpoint cannot blank the published view.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from portpulse.models.blacklist import BlacklistItem
from portpulse.models.checkpoint import Checkpoint, ReportAggregate

_logger = logging.getLogger(__name__)


def parse_status_rows(rows: list[Any]) -> list[tuple[Checkpoint, ReportAggregate]]:
    """Split ``checkpoint_status_view`` rows into (checkpoint, aggregate) pairs, keeping row order."""
    pairs: list[tuple[Checkpoint, ReportAggregate]] = []
    for row in rows:
        if not isinstance(row, dict):
            _logger.debug("Skipping non-object status row: %r", row)
            continue
        try:
            checkpoint = Checkpoint.model_validate(row)
            aggregate = ReportAggregate.model_validate(row)
        except ValidationError:
            _logger.debug("Skipping malformed status row id=%s", row.get("id"), exc_info=True)
            continue
        pairs.append((checkpoint, aggregate))
    return pairs


def parse_blacklist_rows(rows: list[Any]) -> list[BlacklistItem]:
    items: list[BlacklistItem] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            items.append(BlacklistItem.model_validate(row))
        except ValidationError:
            _logger.debug("Skipping malformed blacklist row id=%s", row.get("id"), exc_info=True)
    return items
