"""Optimistic mutations: patch locally, write, then adopt the store's truth.

Each user action becomes a :class:`PendingMutation` moving
``in-flight -> committed | failed``. Whatever the outcome, the owning
scheduler is refreshed afterwards so the speculative patch is discarded and
replaced by authoritative data, never merged with it.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from portpulse._constants import (
    LAST_UPDATED_NOW,
    NOTICE_ITEM_OK,
    NOTICE_REPORT_OK,
    NOTICE_SYNCING,
    NOTICE_VOTE_OK,
    NOTICE_WRITE_FAILED,
    NOTICE_WRITE_TIMEOUT,
)
from portpulse.exceptions import StoreError, StoreTimeoutError
from portpulse.models._base import Severity
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.view import CheckpointView
from portpulse.pipeline.ranking import rank_blacklist, rank_views
from portpulse.state.events import Notice, NoticeLevel, RefreshMode
from portpulse.state.scheduler import RefreshScheduler
from portpulse.store import ReportStore

_logger = logging.getLogger(__name__)

REPORTABLE_SEVERITIES = frozenset({Severity.GREEN, Severity.YELLOW, Severity.RED})


class MutationKind(StrEnum):
    REPORT = "report"
    VOTE = "vote"
    NEW_ITEM = "new-item"


class MutationState(StrEnum):
    IN_FLIGHT = "in-flight"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(slots=True)
class PendingMutation:
    """A write not yet confirmed by the store.

    ``delta`` describes the speculative change shown to the user; it is
    informational only and never merged into authoritative data.
    """

    kind: MutationKind
    target_id: str
    delta: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: MutationState = MutationState.IN_FLIGHT
    error: str | None = None
    created_at: float = field(default_factory=time.monotonic)

    @property
    def settled(self) -> bool:
        return self.state is not MutationState.IN_FLIGHT

    def commit(self) -> None:
        self._settle(MutationState.COMMITTED)

    def fail(self, message: str) -> None:
        self._settle(MutationState.FAILED)
        self.error = message

    def _settle(self, state: MutationState) -> None:
        if self.settled:
            raise RuntimeError(f"Mutation {self.id} already {self.state.value}")
        self.state = state


def patch_report(items: Sequence[CheckpointView], checkpoint_id: str) -> list[CheckpointView]:
    """Count one more report on *checkpoint_id* and mark it fresh, then re-sort."""
    patched = [
        item.model_copy(update={"report_count": item.report_count + 1, "last_updated": LAST_UPDATED_NOW})
        if item.id == checkpoint_id
        else item
        for item in items
    ]
    return rank_views(patched)


def patch_vote(items: Sequence[BlacklistItem], item_id: str) -> list[BlacklistItem]:
    """Add one witness to *item_id*, then re-sort and re-rank the board."""
    patched = [
        item.model_copy(update={"confiscated_count_today": item.confiscated_count_today + 1})
        if item.id == item_id
        else item
        for item in items
    ]
    return rank_blacklist(patched)


class MutationCoordinator:
    """Apply optimistic updates and reconcile them against the report store.

    Only one mutation of each kind may be in flight; further triggers of
    that kind are ignored (``None`` is returned) until the first one has
    settled and its reconciling refresh has completed.
    """

    def __init__(
        self,
        store: ReportStore,
        checkpoints: RefreshScheduler[CheckpointView],
        blacklist: RefreshScheduler[BlacklistItem],
        *,
        on_notice: Callable[[Notice], None] | None = None,
    ) -> None:
        self._store = store
        self._checkpoints = checkpoints
        self._blacklist = blacklist
        self._on_notice = on_notice
        self._in_flight: dict[MutationKind, PendingMutation] = {}

    def in_flight(self, kind: MutationKind) -> PendingMutation | None:
        return self._in_flight.get(kind)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def submit_report(
        self,
        checkpoint_id: str,
        severity: Severity | str,
        wait_minutes: int,
    ) -> PendingMutation | None:
        """Submit a crowd report for a checkpoint."""
        parsed = Severity.parse(severity, default=Severity.UNKNOWN)
        if parsed not in REPORTABLE_SEVERITIES:
            raise ValueError(f"Cannot report severity {severity!r}")
        if wait_minutes < 0:
            raise ValueError("wait_minutes must be >= 0")

        mutation = self._begin(
            MutationKind.REPORT,
            checkpoint_id,
            {"report_count": 1, "severity": parsed.value, "wait_minutes": wait_minutes},
        )
        if mutation is None:
            return None
        self._checkpoints.apply_speculative(lambda items: patch_report(items, checkpoint_id))
        self._notify(NOTICE_SYNCING, NoticeLevel.INFO)
        return await self._settle(
            mutation,
            lambda: self._store.insert_report(checkpoint_id, parsed, wait_minutes),
            self._checkpoints,
            NOTICE_REPORT_OK,
        )

    async def witness(self, item_id: str) -> PendingMutation | None:
        """Confirm ("I saw this too") a blacklist item."""
        mutation = self._begin(MutationKind.VOTE, item_id, {"confiscated_count_today": 1})
        if mutation is None:
            return None
        self._blacklist.apply_speculative(lambda items: patch_vote(items, item_id))
        return await self._settle(
            mutation,
            lambda: self._store.insert_vote(item_id),
            self._blacklist,
            NOTICE_VOTE_OK,
        )

    async def submit_blacklist_item(self, name: str, category: str, reason: str) -> PendingMutation | None:
        """Propose a new board entry. Nothing is shown until the store has it."""
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Item name must not be empty")
        mutation = self._begin(MutationKind.NEW_ITEM, cleaned)
        if mutation is None:
            return None
        return await self._settle(
            mutation,
            lambda: self._store.insert_blacklist_item(cleaned, category, reason),
            self._blacklist,
            NOTICE_ITEM_OK,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin(
        self,
        kind: MutationKind,
        target_id: str,
        delta: dict[str, Any] | None = None,
    ) -> PendingMutation | None:
        current = self._in_flight.get(kind)
        if current is not None:
            _logger.debug("Ignoring %s for %s: %s still in flight", kind.value, target_id, current.id)
            return None
        mutation = PendingMutation(kind=kind, target_id=target_id, delta=delta or {})
        self._in_flight[kind] = mutation
        return mutation

    async def _settle(
        self,
        mutation: PendingMutation,
        write: Callable[[], Awaitable[None]],
        scheduler: RefreshScheduler[Any],
        success_message: str,
    ) -> PendingMutation:
        try:
            try:
                await write()
            except StoreTimeoutError as exc:
                _logger.warning("%s %s timed out: %s", mutation.kind.value, mutation.target_id, exc)
                mutation.fail(NOTICE_WRITE_TIMEOUT)
            except StoreError as exc:
                _logger.warning("%s %s failed: %s", mutation.kind.value, mutation.target_id, exc)
                mutation.fail(NOTICE_WRITE_FAILED)
            else:
                mutation.commit()

            if mutation.state is MutationState.COMMITTED:
                self._notify(success_message, NoticeLevel.INFO)
            else:
                self._notify(mutation.error or NOTICE_WRITE_FAILED, NoticeLevel.ERROR)

            # Same refresh either way: adopt the store's truth.
            await scheduler.refresh(RefreshMode.FOREGROUND)
        finally:
            self._in_flight.pop(mutation.kind, None)
        return mutation

    def _notify(self, message: str, level: NoticeLevel) -> None:
        if self._on_notice is None:
            return
        try:
            self._on_notice(Notice(message, level, source="mutations"))
        except Exception:
            _logger.debug("on_notice callback failed", exc_info=True)
