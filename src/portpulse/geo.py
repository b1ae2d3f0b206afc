"""Great-circle helpers for locating the checkpoint closest to the user."""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Protocol, TypeVar

from portpulse.models.checkpoint import Coordinate

EARTH_RADIUS_KM = 6371.0


class _Located(Protocol):
    @property
    def coordinate(self) -> Coordinate | None: ...


L = TypeVar("L", bound=_Located)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometres between two WGS84 points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def nearest_checkpoint(items: Iterable[L], lat: float, lng: float) -> tuple[L, float] | None:
    """Closest item with a coordinate and its distance in km, or ``None``.

    Items without a coordinate are ignored. On equal distance the earlier
    item wins.
    """
    best: tuple[L, float] | None = None
    for item in items:
        coordinate = item.coordinate
        if coordinate is None:
            continue
        distance = haversine_km(lat, lng, coordinate.lat, coordinate.lng)
        if best is None or distance < best[1]:
            best = (item, distance)
    return best


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"
