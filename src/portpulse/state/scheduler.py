"""Refresh scheduler: periodic, non-overlapping rebuilds of a published snapshot."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Generic, TypeVar

from portpulse._constants import NOTICE_OFFLINE, NOTICE_REFRESH_FAILED
from portpulse.exceptions import PortPulseError
from portpulse.state.events import Notice, NoticeLevel, RefreshMode, RefreshPhase
from portpulse.state.snapshot import ViewSnapshot

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RefreshScheduler(Generic[T]):
    """Run a loader on a fixed period and on demand, publishing immutable snapshots.

    * Foreground refreshes (startup, after a mutation) expose
      :attr:`is_loading` and, on failure, emit a notice. With no live data
      published yet they fall back to the offline dataset.
    * Background refreshes are silent: on failure the last good snapshot
      stays in place.
    * At most one cycle runs at a time. A periodic tick that finds a cycle in
      flight is skipped; an explicit :meth:`refresh` waits its turn.
    * A failed cycle never leaves a speculative snapshot behind: it reverts
      to the last authoritative one.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[Sequence[T]]],
        *,
        name: str,
        interval: float,
        offline_items: Callable[[], Sequence[T]] | None = None,
        on_publish: Callable[[ViewSnapshot[T]], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._loader = loader
        self._name = name
        self._interval = interval
        self._offline_items = offline_items
        self._on_publish = on_publish
        self._on_notice = on_notice
        self._clock = clock

        self._lock = asyncio.Lock()
        self._phase = RefreshPhase.IDLE
        self._snapshot: ViewSnapshot[T] = ViewSnapshot()
        self._last_good: ViewSnapshot[T] | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[ViewSnapshot[T] | None]] = set()
        self._pending = 0
        self.skipped_ticks = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def snapshot(self) -> ViewSnapshot[T]:
        return self._snapshot

    @property
    def phase(self) -> RefreshPhase:
        return self._phase

    @property
    def is_loading(self) -> bool:
        """True only while a foreground load is running (drives the loading indicator)."""
        return self._phase is RefreshPhase.LOADING_FOREGROUND

    @property
    def is_busy(self) -> bool:
        """A cycle is running or queued."""
        return self._pending > 0

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> ViewSnapshot[T]:
        """Foreground load, then start the periodic background loop."""
        snapshot = await self.refresh(RefreshMode.FOREGROUND)
        if not self.is_running:
            self._loop_task = asyncio.create_task(self._run_periodic(), name=f"{self._name}-refresh")
        return snapshot

    async def stop(self) -> None:
        """Stop ticking and let any in-flight cycle finish."""
        task = self._loop_task
        self._loop_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._cycles:
            await asyncio.gather(*self._cycles, return_exceptions=True)

    async def _run_periodic(self) -> None:
        loop = asyncio.get_running_loop()
        next_due = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_due - loop.time()))
            next_due += self._interval
            cycle = asyncio.create_task(self.tick())
            self._cycles.add(cycle)
            cycle.add_done_callback(self._cycles.discard)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def tick(self) -> ViewSnapshot[T] | None:
        """One background refresh, or ``None`` when a cycle is already in flight."""
        if self.is_busy:
            self.skipped_ticks += 1
            _logger.debug("%s: refresh still in flight, skipping tick", self._name)
            return None
        return await self.refresh(RefreshMode.BACKGROUND)

    async def refresh(self, mode: RefreshMode = RefreshMode.FOREGROUND) -> ViewSnapshot[T]:
        """Run one cycle after any in-flight one and return the resulting snapshot."""
        self._pending += 1
        try:
            async with self._lock:
                return await self._run_cycle(mode)
        finally:
            self._pending -= 1

    async def _run_cycle(self, mode: RefreshMode) -> ViewSnapshot[T]:
        foreground = mode is RefreshMode.FOREGROUND
        self._phase = RefreshPhase.LOADING_FOREGROUND if foreground else RefreshPhase.LOADING_BACKGROUND
        try:
            return await self._load_and_publish(mode)
        finally:
            self._phase = RefreshPhase.PUBLISHED if self._snapshot.generation else RefreshPhase.IDLE

    async def _load_and_publish(self, mode: RefreshMode) -> ViewSnapshot[T]:
        foreground = mode is RefreshMode.FOREGROUND
        try:
            items = await self._loader()
        except PortPulseError as exc:
            _logger.debug("%s: %s refresh failed: %s", self._name, mode.value, exc)
            return self._handle_failure(foreground)
        except Exception:
            _logger.warning("%s: %s refresh raised", self._name, mode.value, exc_info=True)
            return self._handle_failure(foreground)

        if not items:
            _logger.debug("%s: store returned no rows, keeping current snapshot", self._name)
            return self._restore_last_good()
        return self._publish(tuple(items), offline=False, speculative=False)

    def _handle_failure(self, foreground: bool) -> ViewSnapshot[T]:
        if not foreground:
            return self._restore_last_good()

        if self._last_good is None and self._offline_items is not None:
            _logger.warning("%s: live data unavailable, publishing offline dataset", self._name)
            snapshot = self._publish(tuple(self._offline_items()), offline=True, speculative=False)
            self._notify(Notice(NOTICE_OFFLINE, NoticeLevel.ERROR, source=self._name))
            return snapshot

        _logger.warning("%s: live data unavailable, keeping last known state", self._name)
        snapshot = self._restore_last_good()
        self._notify(Notice(NOTICE_REFRESH_FAILED, NoticeLevel.ERROR, source=self._name))
        return snapshot

    def _restore_last_good(self) -> ViewSnapshot[T]:
        """Drop a speculative patch, if any, in favour of the last authoritative snapshot."""
        if not self._snapshot.speculative:
            return self._snapshot
        base = self._last_good
        if base is None:
            return self._publish((), offline=False, speculative=False)
        return self._publish(base.items, offline=base.offline, speculative=False)

    # ------------------------------------------------------------------
    # Publication
    # ------------------------------------------------------------------

    def apply_speculative(self, patch: Callable[[tuple[T, ...]], Sequence[T]]) -> ViewSnapshot[T]:
        """Publish *patch* applied to the current items, flagged speculative.

        The next authoritative cycle replaces it wholesale.
        """
        current = self._snapshot
        return self._publish(tuple(patch(current.items)), offline=current.offline, speculative=True)

    def _publish(self, items: tuple[T, ...], *, offline: bool, speculative: bool) -> ViewSnapshot[T]:
        snapshot: ViewSnapshot[T] = ViewSnapshot(
            items=items,
            generation=self._snapshot.generation + 1,
            published_at=self._clock(),
            offline=offline,
            speculative=speculative,
        )
        self._snapshot = snapshot
        if not speculative:
            self._last_good = snapshot
        if self._on_publish is not None:
            try:
                self._on_publish(snapshot)
            except Exception:
                _logger.debug("%s: on_publish callback failed", self._name, exc_info=True)
        return snapshot

    def _notify(self, notice: Notice) -> None:
        if self._on_notice is None:
            return
        try:
            self._on_notice(notice)
        except Exception:
            _logger.debug("%s: on_notice callback failed", self._name, exc_info=True)
