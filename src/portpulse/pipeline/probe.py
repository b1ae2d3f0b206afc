"""Traffic probe: one bounded, cancellable lookup per checkpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from portpulse._api.traffic import fetch_baidu_traffic, fetch_proxy_traffic
from portpulse._constants import DESC_NO_DATA, DESC_TIMEOUT, DESC_UNAVAILABLE, TRAFFIC_TIMEOUT_SECONDS
from portpulse._transport import Transport
from portpulse.config import PortPulseConfig
from portpulse.exceptions import TransportError
from portpulse.models._base import Severity
from portpulse.models.checkpoint import Checkpoint, Coordinate
from portpulse.models.traffic import TrafficOutcome, TrafficSample

_logger = logging.getLogger(__name__)

TrafficLookup = Callable[[Coordinate], Awaitable[tuple[Severity, str]]]
"""Source-specific lookup returning ``(severity, description)``; may raise."""


def build_traffic_lookup(config: PortPulseConfig, transport: Transport) -> TrafficLookup | None:
    """Pick the lookup for the configured provider; ``None`` when no source is configured."""
    if config.traffic_provider == "baidu":

        async def _baidu(coordinate: Coordinate) -> tuple[Severity, str]:
            return await fetch_baidu_traffic(transport, config.baidu_ak, coordinate)

        return _baidu

    if not config.traffic_url:
        return None

    async def _proxy(coordinate: Coordinate) -> tuple[Severity, str]:
        return await fetch_proxy_traffic(transport, config.traffic_url, coordinate)

    return _proxy


class TrafficProbe:
    """Look up road traffic for a checkpoint within a fixed budget.

    :meth:`probe` never raises: every failure becomes a ``GREEN`` fallback
    sample. The budget is enforced with ``asyncio.timeout`` so a slow lookup
    is cancelled, not just ignored.
    """

    def __init__(self, lookup: TrafficLookup | None, *, timeout: float = TRAFFIC_TIMEOUT_SECONDS) -> None:
        self._lookup = lookup
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def probe(self, checkpoint: Checkpoint) -> TrafficSample:
        if checkpoint.coordinate is None:
            return TrafficSample(checkpoint_id=checkpoint.id, outcome=TrafficOutcome.SKIPPED)
        if self._lookup is None:
            return _fallback(checkpoint.id, TrafficOutcome.ERROR, DESC_NO_DATA)

        try:
            async with asyncio.timeout(self._timeout):
                severity, description = await self._lookup(checkpoint.coordinate)
        except TimeoutError:
            _logger.debug("Traffic probe for %s exceeded %.1fs", checkpoint.id, self._timeout)
            return _fallback(checkpoint.id, TrafficOutcome.TIMEOUT, DESC_TIMEOUT)
        except TransportError as exc:
            _logger.debug("Traffic probe for %s failed: %s", checkpoint.id, exc)
            description = DESC_NO_DATA if exc.status_code is not None else DESC_UNAVAILABLE
            return _fallback(checkpoint.id, TrafficOutcome.ERROR, description)
        except Exception:
            # One broken source must not fail the batch.
            _logger.debug("Traffic probe for %s raised", checkpoint.id, exc_info=True)
            return _fallback(checkpoint.id, TrafficOutcome.ERROR, DESC_UNAVAILABLE)

        return TrafficSample(
            checkpoint_id=checkpoint.id,
            severity=severity,
            description=description,
            outcome=TrafficOutcome.OK,
        )

    __call__ = probe


def _fallback(checkpoint_id: str, outcome: TrafficOutcome, description: str) -> TrafficSample:
    return TrafficSample(
        checkpoint_id=checkpoint_id,
        severity=Severity.GREEN,
        description=description,
        outcome=outcome,
    )
