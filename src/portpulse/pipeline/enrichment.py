"""Enrichment pipeline: concurrent traffic fan-out joined back to report stats."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from portpulse._constants import DESC_UNAVAILABLE
from portpulse.models._base import Severity
from portpulse.models.checkpoint import Checkpoint, ReportAggregate
from portpulse.models.traffic import TrafficOutcome, TrafficSample
from portpulse.models.view import CheckpointView
from portpulse.pipeline.ranking import rank_views
from portpulse.pipeline.scoring import merge_view

_logger = logging.getLogger(__name__)

ProbeFn = Callable[[Checkpoint], Awaitable[TrafficSample]]
StatusPairs = Sequence[tuple[Checkpoint, ReportAggregate]]


async def enrich(checkpoints: Sequence[Checkpoint], probe: ProbeFn) -> list[TrafficSample]:
    """Probe every checkpoint concurrently.

    Returns exactly one sample per checkpoint, in input order whatever the
    completion order. Checkpoints without a coordinate are never probed and
    get a skipped sample. A probe that raises is replaced by a fallback
    sample without affecting the others.
    """
    located = [checkpoint for checkpoint in checkpoints if checkpoint.coordinate is not None]
    if not located:
        return [_skipped(checkpoint) for checkpoint in checkpoints]
    results = iter(await asyncio.gather(*(probe(checkpoint) for checkpoint in located), return_exceptions=True))

    samples: list[TrafficSample] = []
    for checkpoint in checkpoints:
        if checkpoint.coordinate is None:
            samples.append(_skipped(checkpoint))
            continue
        result = next(results)
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            _logger.debug("Probe for %s raised %r; using fallback", checkpoint.id, result)
            result = TrafficSample(
                checkpoint_id=checkpoint.id,
                severity=Severity.GREEN,
                description=DESC_UNAVAILABLE,
                outcome=TrafficOutcome.ERROR,
            )
        samples.append(result)
    return samples


def _skipped(checkpoint: Checkpoint) -> TrafficSample:
    return TrafficSample(checkpoint_id=checkpoint.id, outcome=TrafficOutcome.SKIPPED)


async def build_views(
    pairs: StatusPairs,
    probe: ProbeFn,
    *,
    now: datetime | None = None,
) -> list[CheckpointView]:
    """Enrich and score; output follows the order of *pairs*."""
    samples = await enrich([checkpoint for checkpoint, _ in pairs], probe)
    return [
        merge_view(checkpoint, aggregate, sample, now=now)
        for (checkpoint, aggregate), sample in zip(pairs, samples, strict=True)
    ]


async def run_pipeline(
    load: Callable[[], Awaitable[StatusPairs]],
    probe: ProbeFn,
    *,
    now: datetime | None = None,
) -> list[CheckpointView]:
    """One full cycle: bulk read, fan-out, score, rank.

    Store errors propagate so the scheduler can decide how to fall back.
    """
    pairs = await load()
    views = await build_views(pairs, probe, now=now)
    _logger.debug("Built %d checkpoint views", len(views))
    return rank_views(views)
