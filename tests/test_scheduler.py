from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime

import pytest

from portpulse._constants import NOTICE_OFFLINE, NOTICE_REFRESH_FAILED
from portpulse.exceptions import StoreUnavailableError
from portpulse.state.events import Notice, NoticeLevel, RefreshMode, RefreshPhase
from portpulse.state.scheduler import RefreshScheduler
from portpulse.state.snapshot import ViewSnapshot


def _clock() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


class FakeLoader:
    """Loader returning queued results; exceptions in the queue are raised."""

    def __init__(self, *results: Sequence[str] | Exception) -> None:
        self.results = list(results)
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def __call__(self) -> Sequence[str]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def _scheduler(
    loader: FakeLoader,
    *,
    offline: Sequence[str] | None = ("offline-a", "offline-b"),
    notices: list[Notice] | None = None,
    published: list[ViewSnapshot[str]] | None = None,
    interval: float = 60.0,
) -> RefreshScheduler[str]:
    return RefreshScheduler(
        loader,
        name="test",
        interval=interval,
        offline_items=(lambda: offline) if offline is not None else None,
        on_publish=published.append if published is not None else None,
        on_notice=notices.append if notices is not None else None,
        clock=_clock,
    )


@pytest.mark.asyncio
async def test_start_publishes_live_snapshot() -> None:
    published: list[ViewSnapshot[str]] = []
    scheduler = _scheduler(FakeLoader(["a", "b"]), published=published)

    snapshot = await scheduler.start()
    await scheduler.stop()

    assert snapshot.items == ("a", "b")
    assert snapshot.generation == 1
    assert snapshot.is_live
    assert snapshot.published_at == _clock()
    assert published == [snapshot]
    assert scheduler.phase is RefreshPhase.PUBLISHED


@pytest.mark.asyncio
async def test_background_failure_keeps_last_view_silently() -> None:
    notices: list[Notice] = []
    loader = FakeLoader(["a"], StoreUnavailableError("down"))
    scheduler = _scheduler(loader, notices=notices)
    first = await scheduler.refresh()

    after = await scheduler.tick()

    assert after is first
    assert scheduler.snapshot is first
    assert notices == []


@pytest.mark.asyncio
async def test_foreground_failure_without_data_publishes_offline_dataset() -> None:
    notices: list[Notice] = []
    scheduler = _scheduler(FakeLoader(StoreUnavailableError("down")), notices=notices)

    snapshot = await scheduler.refresh(RefreshMode.FOREGROUND)

    assert snapshot.items == ("offline-a", "offline-b")
    assert snapshot.offline
    assert not snapshot.is_live
    assert [(n.message, n.level) for n in notices] == [(NOTICE_OFFLINE, NoticeLevel.ERROR)]


@pytest.mark.asyncio
async def test_foreground_failure_after_live_data_keeps_it() -> None:
    notices: list[Notice] = []
    scheduler = _scheduler(FakeLoader(["live"], StoreUnavailableError("down")), notices=notices)
    first = await scheduler.refresh()

    snapshot = await scheduler.refresh(RefreshMode.FOREGROUND)

    assert snapshot is first
    assert snapshot.items == ("live",)
    assert [n.message for n in notices] == [NOTICE_REFRESH_FAILED]


@pytest.mark.asyncio
async def test_foreground_failure_without_offline_dataset_stays_empty() -> None:
    scheduler = _scheduler(FakeLoader(RuntimeError("bug")), offline=None)

    snapshot = await scheduler.refresh()

    assert snapshot.items == ()
    assert snapshot.generation == 0


@pytest.mark.asyncio
async def test_empty_result_keeps_current_snapshot() -> None:
    scheduler = _scheduler(FakeLoader(["a"], []))
    first = await scheduler.refresh()

    assert await scheduler.refresh() is first


@pytest.mark.asyncio
async def test_tick_is_skipped_while_a_cycle_is_in_flight() -> None:
    loader = FakeLoader(["a"])
    loader.gate = asyncio.Event()
    scheduler = _scheduler(loader)

    in_flight = asyncio.create_task(scheduler.refresh(RefreshMode.FOREGROUND))
    await asyncio.sleep(0)

    assert scheduler.is_busy
    assert scheduler.is_loading
    assert await scheduler.tick() is None
    assert scheduler.skipped_ticks == 1

    loader.gate.set()
    snapshot = await in_flight

    assert loader.calls == 1
    assert snapshot.items == ("a",)
    assert not scheduler.is_loading


@pytest.mark.asyncio
async def test_background_cycle_does_not_expose_loading() -> None:
    loader = FakeLoader(["a"])
    loader.gate = asyncio.Event()
    scheduler = _scheduler(loader)

    in_flight = asyncio.create_task(scheduler.refresh(RefreshMode.BACKGROUND))
    await asyncio.sleep(0)

    assert scheduler.phase is RefreshPhase.LOADING_BACKGROUND
    assert not scheduler.is_loading

    loader.gate.set()
    await in_flight


@pytest.mark.asyncio
async def test_explicit_refreshes_are_serialised_in_call_order() -> None:
    loader = FakeLoader(["first"], ["second"])
    loader.gate = asyncio.Event()
    scheduler = _scheduler(loader)

    one = asyncio.create_task(scheduler.refresh())
    two = asyncio.create_task(scheduler.refresh())
    await asyncio.sleep(0)
    loader.gate.set()

    first, second = await asyncio.gather(one, two)

    assert first.generation == 1
    assert second.generation == 2
    assert scheduler.snapshot.items == ("second",)


@pytest.mark.asyncio
async def test_failed_cycle_reverts_speculative_patch() -> None:
    scheduler = _scheduler(FakeLoader(["a", "b"], StoreUnavailableError("down")))
    await scheduler.refresh()

    patched = scheduler.apply_speculative(lambda items: (*items, "pending"))
    assert patched.speculative
    assert patched.items == ("a", "b", "pending")

    reverted = await scheduler.tick()

    assert reverted is not None
    assert reverted.items == ("a", "b")
    assert not reverted.speculative
    assert reverted.generation == 3


@pytest.mark.asyncio
async def test_successful_cycle_replaces_speculative_patch_wholesale() -> None:
    scheduler = _scheduler(FakeLoader(["a"], ["a", "b"]))
    await scheduler.refresh()
    scheduler.apply_speculative(lambda items: ("patched",))

    snapshot = await scheduler.refresh()

    assert snapshot.items == ("a", "b")
    assert snapshot.is_live


@pytest.mark.asyncio
async def test_periodic_loop_refreshes_until_stopped() -> None:
    loader = FakeLoader(["a"])
    scheduler = _scheduler(loader, interval=0.01)

    await scheduler.start()
    assert scheduler.is_running
    await asyncio.sleep(0.1)
    await scheduler.stop()
    calls = loader.calls
    await asyncio.sleep(0.05)

    assert calls >= 3
    assert loader.calls == calls
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_publish_callback_errors_do_not_break_the_cycle() -> None:
    def _broken(_snapshot: ViewSnapshot[str]) -> None:
        raise RuntimeError("listener bug")

    scheduler = RefreshScheduler(FakeLoader(["a"]), name="test", interval=60.0, on_publish=_broken)

    snapshot = await scheduler.refresh()

    assert snapshot.items == ("a",)


@pytest.mark.asyncio
async def test_periodic_ticks_are_skipped_while_a_cycle_is_in_flight() -> None:
    loader = FakeLoader(["a"])
    scheduler = _scheduler(loader, interval=0.01)
    await scheduler.start()

    loader.gate = asyncio.Event()
    reconciling = asyncio.create_task(scheduler.refresh(RefreshMode.FOREGROUND))
    await asyncio.sleep(0.1)

    assert loader.calls == 2
    assert scheduler.skipped_ticks > 0

    loader.gate.set()
    await reconciling
    await scheduler.stop()
