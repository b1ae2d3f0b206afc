"""Scoring & merge of crowd reports with road traffic.

Everything here is pure: the same aggregate and traffic sample always give
the same view.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import NamedTuple

from portpulse._constants import LAST_UPDATED_HOUR, LAST_UPDATED_NONE, LAST_UPDATED_NOW
from portpulse.models._base import Severity
from portpulse.models.checkpoint import Checkpoint, ReportAggregate
from portpulse.models.traffic import TrafficSample
from portpulse.models.view import CheckpointView

STRICTNESS_BASE = 5
STRICTNESS_MIN = 1
STRICTNESS_MAX = 10

_SEVERITY_ADJUSTMENT: dict[Severity, int] = {
    Severity.RED: 3,
    Severity.YELLOW: 1,
    Severity.GREEN: -1,
}


class Derivation(NamedTuple):
    final_severity: Severity
    strictness_score: int


def strictness(reported: Severity, wait_minutes: int) -> int:
    """1-10 strictness from the reported severity and the average wait."""
    score = STRICTNESS_BASE + _SEVERITY_ADJUSTMENT.get(reported, 0)
    if wait_minutes > 30:
        score += 1
    if wait_minutes > 60:
        score += 1
    return max(STRICTNESS_MIN, min(STRICTNESS_MAX, score))


def derive(reported: Severity, wait_minutes: int, traffic: TrafficSample | None) -> Derivation:
    """Merge reported severity with traffic.

    Road congestion can only escalate the displayed color. The strictness
    score is computed from the reported severity alone and ignores the
    traffic override.
    """
    final = reported
    if traffic is not None and traffic.severity is Severity.RED:
        final = Severity.RED
    return Derivation(final, strictness(reported, wait_minutes))


def format_last_updated(last_report_time: datetime | None, now: datetime | None = None) -> str:
    if last_report_time is None:
        return LAST_UPDATED_NONE
    now = now or datetime.now(UTC)
    minutes = int((now - last_report_time).total_seconds() // 60)
    if minutes < 1:
        return LAST_UPDATED_NOW
    if minutes < 60:
        return f"{minutes} min ago"
    return LAST_UPDATED_HOUR


def merge_view(
    checkpoint: Checkpoint,
    aggregate: ReportAggregate,
    traffic: TrafficSample | None,
    *,
    now: datetime | None = None,
) -> CheckpointView:
    derivation = derive(aggregate.most_reported_status, aggregate.avg_wait_time, traffic)
    return CheckpointView(
        id=checkpoint.id,
        name=checkpoint.name,
        location=checkpoint.location,
        status=derivation.final_severity,
        strictness_score=derivation.strictness_score,
        wait_time_minutes=aggregate.avg_wait_time,
        report_count=aggregate.report_count,
        last_updated=format_last_updated(aggregate.last_report_time, now),
        last_report_time=aggregate.last_report_time,
        coordinate=checkpoint.coordinate,
        traffic_status=traffic.severity if traffic is not None else Severity.GREEN,
        traffic_description=traffic.description if traffic is not None else "",
    )
