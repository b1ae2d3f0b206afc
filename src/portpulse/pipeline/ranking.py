"""Display ordering for checkpoint views and the blacklist board."""

from __future__ import annotations

from collections.abc import Iterable

from portpulse.models.blacklist import BlacklistItem
from portpulse.models.view import CheckpointView


def rank_views(views: Iterable[CheckpointView]) -> list[CheckpointView]:
    """Most severe first; ties keep their input order so the list does not jitter between cycles."""
    return sorted(views, key=lambda view: view.status.weight, reverse=True)


def rank_blacklist(items: Iterable[BlacklistItem]) -> list[BlacklistItem]:
    """Order by today's count (descending, stable) and renumber ranks from 1."""
    ordered = sorted(items, key=lambda item: item.confiscated_count_today, reverse=True)
    return [item.model_copy(update={"rank": index}) for index, item in enumerate(ordered, start=1)]
