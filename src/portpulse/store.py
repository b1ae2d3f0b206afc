"""Report store clients.

:class:`ReportStore` is the interface the pipeline and the mutation
coordinator depend on. :class:`SupabaseReportStore` talks to the real store;
:class:`DemoReportStore` keeps everything in memory and is used when no store
is configured.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from portpulse._api import store as _store_api
from portpulse._offline import OFFLINE_BLACKLIST, OFFLINE_CHECKPOINTS
from portpulse._transport import Transport
from portpulse.config import PortPulseConfig
from portpulse.exceptions import StoreWriteError
from portpulse.ingestion.rows import parse_blacklist_rows, parse_status_rows
from portpulse.models._base import Severity
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.checkpoint import Checkpoint, ReportAggregate

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReportStore(Protocol):
    """Persistent report/vote store.

    Reads raise :class:`~portpulse.exceptions.StoreUnavailableError`; writes
    raise :class:`~portpulse.exceptions.StoreWriteError` or its
    :class:`~portpulse.exceptions.StoreTimeoutError` subclass.
    """

    async def list_checkpoints_with_aggregates(self) -> list[tuple[Checkpoint, ReportAggregate]]: ...

    async def insert_report(self, checkpoint_id: str, severity: Severity, wait_minutes: int) -> None: ...

    async def insert_vote(self, item_id: str) -> None: ...

    async def list_blacklist(self) -> list[BlacklistItem]: ...

    async def insert_blacklist_item(self, name: str, category: str, reason: str) -> None: ...


class SupabaseReportStore:
    """Report store backed by a Supabase (PostgREST) project."""

    def __init__(self, config: PortPulseConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    async def list_checkpoints_with_aggregates(self) -> list[tuple[Checkpoint, ReportAggregate]]:
        rows = await _store_api.fetch_status_rows(self._config, self._transport)
        return parse_status_rows(rows)

    async def insert_report(self, checkpoint_id: str, severity: Severity, wait_minutes: int) -> None:
        await _store_api.insert_report(
            self._config,
            self._transport,
            checkpoint_id=checkpoint_id,
            status=severity.value,
            wait_time_minutes=wait_minutes,
        )

    async def insert_vote(self, item_id: str) -> None:
        await _store_api.increment_vote(self._config, self._transport, item_id=item_id)

    async def list_blacklist(self) -> list[BlacklistItem]:
        rows = await _store_api.fetch_blacklist_rows(self._config, self._transport)
        return parse_blacklist_rows(rows)

    async def insert_blacklist_item(self, name: str, category: str, reason: str) -> None:
        await _store_api.insert_blacklist_item(
            self._config,
            self._transport,
            name=name,
            category=category,
            reason=reason,
        )


class DemoReportStore:
    """In-memory store seeded from the offline dataset.

    Writes update the aggregates the next read returns, so the whole
    report -> refresh loop behaves as it would against a real store.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._checkpoints: dict[str, Checkpoint] = {}
        self._aggregates: dict[str, ReportAggregate] = {}
        self._tallies: dict[str, Counter[Severity]] = {}
        for checkpoint, aggregate, _ in OFFLINE_CHECKPOINTS:
            self._checkpoints[checkpoint.id] = checkpoint
            self._aggregates[checkpoint.id] = aggregate
            self._tallies[checkpoint.id] = Counter({aggregate.most_reported_status: aggregate.report_count})
        self._blacklist: dict[str, BlacklistItem] = {item.id: item for item in OFFLINE_BLACKLIST}

    async def list_checkpoints_with_aggregates(self) -> list[tuple[Checkpoint, ReportAggregate]]:
        return [(checkpoint, self._aggregates[checkpoint_id]) for checkpoint_id, checkpoint in self._checkpoints.items()]

    async def insert_report(self, checkpoint_id: str, severity: Severity, wait_minutes: int) -> None:
        aggregate = self._aggregates.get(checkpoint_id)
        if aggregate is None:
            raise StoreWriteError(f"Unknown checkpoint {checkpoint_id}", endpoint="demo:reports")
        tally = self._tallies[checkpoint_id]
        tally[severity] += 1
        count = aggregate.report_count + 1
        average = round((aggregate.avg_wait_time * aggregate.report_count + wait_minutes) / count)
        # Most frequent severity; ties go to the more severe color.
        most_reported = max(tally, key=lambda s: (tally[s], s.weight))
        self._aggregates[checkpoint_id] = aggregate.model_copy(
            update={
                "most_reported_status": most_reported,
                "avg_wait_time": average,
                "report_count": count,
                "last_report_time": self._clock(),
            }
        )
        _logger.debug("Demo report stored for %s (%d reports)", checkpoint_id, count)

    async def insert_vote(self, item_id: str) -> None:
        item = self._blacklist.get(item_id)
        if item is None:
            raise StoreWriteError(f"Unknown blacklist item {item_id}", endpoint="demo:vote")
        self._blacklist[item_id] = item.model_copy(
            update={"confiscated_count_today": item.confiscated_count_today + 1}
        )

    async def list_blacklist(self) -> list[BlacklistItem]:
        return sorted(self._blacklist.values(), key=lambda item: item.confiscated_count_today, reverse=True)

    async def insert_blacklist_item(self, name: str, category: str, reason: str) -> None:
        item_id = str(max((int(key) for key in self._blacklist if key.isdigit()), default=0) + 1)
        self._blacklist[item_id] = BlacklistItem(
            id=item_id,
            name=name,
            category=category,
            reason=reason,
            confiscated_count_today=1,
        )
