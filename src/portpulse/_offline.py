"""Bundled offline dataset.

Published when the store cannot be reached on a foreground load, and used
to seed the demo store when no store is configured.
"""

from __future__ import annotations

from datetime import datetime

from portpulse._constants import LAST_UPDATED_OFFLINE
from portpulse.models._base import Severity
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.checkpoint import Checkpoint, Coordinate, ReportAggregate
from portpulse.models.traffic import TrafficSample
from portpulse.models.view import CheckpointView
from portpulse.pipeline.ranking import rank_blacklist, rank_views
from portpulse.pipeline.scoring import merge_view

OFFLINE_CHECKPOINTS: tuple[tuple[Checkpoint, ReportAggregate, TrafficSample], ...] = (
    (
        Checkpoint(
            id="1",
            name="Haikou Meilan Airport",
            location="T2 Domestic Departures",
            coordinate=Coordinate(lat=19.9388, lng=110.4589),
        ),
        ReportAggregate(checkpoint_id="1", most_reported_status=Severity.RED, avg_wait_time=45, report_count=128),
        TrafficSample(checkpoint_id="1", severity=Severity.YELLOW, description="Slow traffic"),
    ),
    (
        Checkpoint(
            id="2",
            name="Sanya Phoenix Airport",
            location="Security Gate B",
            coordinate=Coordinate(lat=18.3039, lng=109.4124),
        ),
        ReportAggregate(checkpoint_id="2", most_reported_status=Severity.YELLOW, avg_wait_time=20, report_count=84),
        TrafficSample(checkpoint_id="2", severity=Severity.GREEN, description="Roads clear"),
    ),
    (
        Checkpoint(
            id="3",
            name="New Seaport (Ferry)",
            location="Car Security Lane",
            coordinate=Coordinate(lat=20.0536, lng=110.1554),
        ),
        ReportAggregate(checkpoint_id="3", most_reported_status=Severity.GREEN, avg_wait_time=5, report_count=342),
        TrafficSample(checkpoint_id="3", severity=Severity.GREEN, description="Roads clear"),
    ),
)

OFFLINE_BLACKLIST: tuple[BlacklistItem, ...] = (
    BlacklistItem(id="1", name="Luxury eye cream", category="Cosmetics", reason="Over the item limit", confiscated_count_today=142),
    BlacklistItem(id="2", name="Dyson hair dryer (several)", category="Electronics", reason="Suspected resale", confiscated_count_today=89),
    BlacklistItem(id="3", name="Moutai (full case)", category="Alcohol", reason="Over the 1500ml limit", confiscated_count_today=56),
    BlacklistItem(id="4", name="iPhone 15 Pro Max", category="Phones", reason="Undeclared, beyond personal use", confiscated_count_today=33),
    BlacklistItem(id="5", name="DJI drone", category="Electronics", reason="Battery over limit", confiscated_count_today=21),
)


def offline_views(now: datetime | None = None) -> list[CheckpointView]:
    """Score the offline dataset through the normal merge rules, labelled as offline."""
    views = [
        merge_view(checkpoint, aggregate, traffic, now=now).model_copy(update={"last_updated": LAST_UPDATED_OFFLINE})
        for checkpoint, aggregate, traffic in OFFLINE_CHECKPOINTS
    ]
    return rank_views(views)


def offline_blacklist() -> list[BlacklistItem]:
    return rank_blacklist(OFFLINE_BLACKLIST)
