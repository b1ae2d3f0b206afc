"""Traffic source endpoints.

Two sources are supported:
  - a proxy endpoint returning an already normalised
    ``{"trafficStatus": GREEN|YELLOW|RED, "description": str}``
  - the Baidu rectangular traffic query (``/traffic/v1/bound``) over a
    small box around the checkpoint

Both return ``(severity, description)`` and raise :class:`TransportError`
for anything they cannot interpret. Timeouts are owned by the caller.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from portpulse._constants import (
    BAIDU_BOUND_DELTA,
    BAIDU_TRAFFIC_URL,
    DESC_HEAVY,
    DESC_ROADS_CLEAR,
    DESC_SEVERE,
    DESC_SLOW,
    DESC_SURROUNDINGS_CLEAR,
    DESC_UNAVAILABLE,
)
from portpulse._transport import Transport
from portpulse.exceptions import TransportError
from portpulse.models._base import Severity
from portpulse.models.checkpoint import Coordinate
from portpulse.models.traffic import BaiduTrafficResponse, TrafficReading

_logger = logging.getLogger(__name__)

# Worst Baidu road status -> (severity, description)
_BAIDU_STATUS_MAP: dict[int, tuple[Severity, str]] = {
    4: (Severity.RED, DESC_SEVERE),
    3: (Severity.RED, DESC_HEAVY),
    2: (Severity.YELLOW, DESC_SLOW),
}


def format_bounds(coordinate: Coordinate, delta: float = BAIDU_BOUND_DELTA) -> str:
    """Baidu ``bounds`` parameter: ``minLat,minLng;maxLat,maxLng``."""
    return (
        f"{coordinate.lat - delta:.6f},{coordinate.lng - delta:.6f};"
        f"{coordinate.lat + delta:.6f},{coordinate.lng + delta:.6f}"
    )


def classify_baidu_response(response: BaiduTrafficResponse) -> tuple[Severity, str]:
    """Reduce a Baidu response to the worst congestion among its roads."""
    if response.status != 0:
        _logger.debug("Baidu traffic status=%s message=%s", response.status, response.message)
        return Severity.GREEN, DESC_UNAVAILABLE
    if not response.road_traffic:
        return Severity.GREEN, DESC_SURROUNDINGS_CLEAR
    worst = max(road.status for road in response.road_traffic)
    return _BAIDU_STATUS_MAP.get(worst, (Severity.GREEN, DESC_ROADS_CLEAR))


async def fetch_proxy_traffic(transport: Transport, url: str, coordinate: Coordinate) -> tuple[Severity, str]:
    body = await transport.request_json(
        "GET",
        url,
        params={"lat": str(coordinate.lat), "lng": str(coordinate.lng)},
    )
    if not isinstance(body, dict):
        raise TransportError(f"Malformed traffic payload from {url}", endpoint=url)
    try:
        reading = TrafficReading.model_validate(body)
    except ValidationError as exc:
        raise TransportError(f"Malformed traffic payload from {url}: {exc}", endpoint=url) from exc
    return reading.severity, reading.description


async def fetch_baidu_traffic(
    transport: Transport,
    ak: str,
    coordinate: Coordinate,
    *,
    url: str = BAIDU_TRAFFIC_URL,
) -> tuple[Severity, str]:
    body = await transport.request_json(
        "GET",
        url,
        params={"ak": ak, "bounds": format_bounds(coordinate), "coord_type_input": "wgs84"},
    )
    if not isinstance(body, dict):
        raise TransportError("Malformed Baidu traffic payload", endpoint=url)
    try:
        response = BaiduTrafficResponse.model_validate(body)
    except ValidationError as exc:
        raise TransportError(f"Malformed Baidu traffic payload: {exc}", endpoint=url) from exc
    return classify_baidu_response(response)
