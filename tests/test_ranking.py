from __future__ import annotations

from portpulse.models._base import Severity
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.view import CheckpointView
from portpulse.pipeline.ranking import rank_blacklist, rank_views


def _view(view_id: str, status: Severity) -> CheckpointView:
    return CheckpointView(id=view_id, name=f"Checkpoint {view_id}", status=status, strictness_score=5)


def test_rank_views_orders_red_yellow_green() -> None:
    views = [
        _view("a", Severity.GREEN),
        _view("b", Severity.RED),
        _view("c", Severity.YELLOW),
    ]

    assert [view.id for view in rank_views(views)] == ["b", "c", "a"]


def test_rank_views_is_stable_for_equal_severity() -> None:
    views = [
        _view("g1", Severity.GREEN),
        _view("r1", Severity.RED),
        _view("g2", Severity.GREEN),
        _view("r2", Severity.RED),
        _view("g3", Severity.GREEN),
    ]

    assert [view.id for view in rank_views(views)] == ["r1", "r2", "g1", "g2", "g3"]


def test_unknown_severity_sorts_last() -> None:
    views = [_view("u", Severity.UNKNOWN), _view("g", Severity.GREEN)]

    assert [view.id for view in rank_views(views)] == ["g", "u"]


def test_rank_views_is_idempotent() -> None:
    views = [_view("1", Severity.YELLOW), _view("2", Severity.RED), _view("3", Severity.YELLOW)]

    once = rank_views(views)

    assert rank_views(once) == once


def test_rank_blacklist_sorts_by_count_and_renumbers() -> None:
    items = [
        BlacklistItem(id="1", rank=1, name="Eye cream", confiscated_count_today=10),
        BlacklistItem(id="2", rank=2, name="Hair dryer", confiscated_count_today=30),
        BlacklistItem(id="3", rank=3, name="Drone", confiscated_count_today=10),
    ]

    ranked = rank_blacklist(items)

    assert [item.id for item in ranked] == ["2", "1", "3"]
    assert [item.rank for item in ranked] == [1, 2, 3]
