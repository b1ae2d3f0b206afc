from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from portpulse._constants import (
    LAST_UPDATED_NOW,
    NOTICE_REPORT_OK,
    NOTICE_SYNCING,
    NOTICE_VOTE_OK,
    NOTICE_WRITE_FAILED,
    NOTICE_WRITE_TIMEOUT,
)
from portpulse.exceptions import StoreTimeoutError, StoreWriteError
from portpulse.models._base import Severity
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.checkpoint import Checkpoint, ReportAggregate
from portpulse.models.traffic import TrafficSample
from portpulse.models.view import CheckpointView
from portpulse.pipeline.enrichment import run_pipeline
from portpulse.pipeline.ranking import rank_blacklist
from portpulse.state.events import Notice
from portpulse.state.mutations import (
    MutationCoordinator,
    MutationKind,
    MutationState,
    PendingMutation,
    patch_report,
    patch_vote,
)
from portpulse.state.scheduler import RefreshScheduler
from portpulse.state.snapshot import ViewSnapshot


@dataclass
class FakeReportStore:
    """In-test store: counters per id, optional write failure and write gate."""

    counts: dict[str, int] = field(default_factory=lambda: {"1": 10, "2": 5})
    reports: dict[str, int] = field(default_factory=lambda: {"a": 3, "b": 1})
    fail_with: Exception | None = None
    gate: asyncio.Event | None = None
    writes: list[tuple[str, str]] = field(default_factory=list)

    async def _write(self, kind: str, target: str) -> None:
        self.writes.append((kind, target))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def list_checkpoints_with_aggregates(self) -> list[tuple[Checkpoint, ReportAggregate]]:
        return [
            (
                Checkpoint(id=checkpoint_id, name=checkpoint_id),
                ReportAggregate(checkpoint_id=checkpoint_id, most_reported_status=Severity.YELLOW, report_count=count),
            )
            for checkpoint_id, count in self.reports.items()
        ]

    async def insert_report(self, checkpoint_id: str, severity: Severity, wait_minutes: int) -> None:
        await self._write("report", checkpoint_id)
        self.reports[checkpoint_id] += 1

    async def insert_vote(self, item_id: str) -> None:
        await self._write("vote", item_id)
        self.counts[item_id] += 1

    async def list_blacklist(self) -> list[BlacklistItem]:
        return [
            BlacklistItem(id=item_id, name=f"item {item_id}", confiscated_count_today=count)
            for item_id, count in self.counts.items()
        ]

    async def insert_blacklist_item(self, name: str, category: str, reason: str) -> None:
        await self._write("item", name)
        self.counts[str(len(self.counts) + 1)] = 1


class Harness:
    def __init__(self, store: FakeReportStore) -> None:
        self.store = store
        self.notices: list[Notice] = []
        self.checkpoint_snapshots: list[ViewSnapshot[CheckpointView]] = []
        self.blacklist_snapshots: list[ViewSnapshot[BlacklistItem]] = []

        async def _probe(checkpoint: Checkpoint) -> TrafficSample:
            return TrafficSample(checkpoint_id=checkpoint.id)

        async def _load_checkpoints() -> list[CheckpointView]:
            return await run_pipeline(store.list_checkpoints_with_aggregates, _probe)

        async def _load_blacklist() -> list[BlacklistItem]:
            return rank_blacklist(await store.list_blacklist())

        self.checkpoints = RefreshScheduler(
            _load_checkpoints,
            name="checkpoints",
            interval=60.0,
            on_publish=self.checkpoint_snapshots.append,
        )
        self.blacklist = RefreshScheduler(
            _load_blacklist,
            name="blacklist",
            interval=60.0,
            on_publish=self.blacklist_snapshots.append,
        )
        self.coordinator = MutationCoordinator(
            store,
            self.checkpoints,
            self.blacklist,
            on_notice=self.notices.append,
        )

    async def load(self) -> None:
        await self.checkpoints.refresh()
        await self.blacklist.refresh()

    def counts(self) -> dict[str, int]:
        return {item.id: item.confiscated_count_today for item in self.blacklist.snapshot.items}


def test_pending_mutation_settles_once() -> None:
    mutation = PendingMutation(kind=MutationKind.VOTE, target_id="1")
    assert not mutation.settled

    mutation.commit()

    assert mutation.state is MutationState.COMMITTED
    with pytest.raises(RuntimeError):
        mutation.fail("late")


def test_patch_vote_resorts_and_reranks() -> None:
    items = rank_blacklist(
        [
            BlacklistItem(id="1", confiscated_count_today=5),
            BlacklistItem(id="2", confiscated_count_today=5),
        ]
    )

    patched = patch_vote(items, "2")

    assert [(item.id, item.rank, item.confiscated_count_today) for item in patched] == [("2", 1, 6), ("1", 2, 5)]


def test_patch_report_bumps_count_and_marks_fresh() -> None:
    views = [
        CheckpointView(id="1", name="one", status=Severity.RED, strictness_score=8, report_count=2, last_updated="9 min ago"),
        CheckpointView(id="2", name="two", status=Severity.GREEN, strictness_score=4, report_count=7),
    ]

    patched = patch_report(views, "2")

    assert [view.id for view in patched] == ["1", "2"]
    assert patched[1].report_count == 8
    assert patched[1].last_updated == LAST_UPDATED_NOW
    assert patched[0] is views[0]


@pytest.mark.asyncio
async def test_witness_shows_patch_then_adopts_store_truth() -> None:
    harness = Harness(FakeReportStore())
    await harness.load()

    mutation = await harness.coordinator.witness("2")

    assert mutation is not None
    assert mutation.state is MutationState.COMMITTED
    speculative = harness.blacklist_snapshots[1]
    assert speculative.speculative
    assert {item.id: item.confiscated_count_today for item in speculative.items} == {"1": 10, "2": 6}
    assert harness.blacklist.snapshot.is_live
    assert harness.counts() == {"1": 10, "2": 6}
    assert [n.message for n in harness.notices] == [NOTICE_VOTE_OK]
    assert harness.coordinator.in_flight(MutationKind.VOTE) is None


@pytest.mark.asyncio
async def test_rejected_vote_reverts_to_authoritative_counts() -> None:
    store = FakeReportStore(fail_with=StoreWriteError("rejected"))
    harness = Harness(store)
    await harness.load()

    mutation = await harness.coordinator.witness("2")

    assert mutation is not None
    assert mutation.state is MutationState.FAILED
    assert mutation.error == NOTICE_WRITE_FAILED
    assert harness.counts() == {"1": 10, "2": 5}
    assert not harness.blacklist.snapshot.speculative
    assert [n.message for n in harness.notices] == [NOTICE_WRITE_FAILED]


@pytest.mark.asyncio
async def test_timed_out_vote_gets_its_own_notice() -> None:
    harness = Harness(FakeReportStore(fail_with=StoreTimeoutError("slow")))
    await harness.load()

    mutation = await harness.coordinator.witness("1")

    assert mutation is not None
    assert mutation.error == NOTICE_WRITE_TIMEOUT
    assert harness.counts() == {"1": 10, "2": 5}


@pytest.mark.asyncio
async def test_second_vote_while_first_in_flight_is_ignored() -> None:
    store = FakeReportStore(gate=asyncio.Event())
    harness = Harness(store)
    await harness.load()

    first = asyncio.create_task(harness.coordinator.witness("1"))
    await asyncio.sleep(0)

    assert harness.coordinator.in_flight(MutationKind.VOTE) is not None
    assert await harness.coordinator.witness("2") is None
    assert await harness.coordinator.witness("1") is None

    store.gate.set()
    mutation = await first

    assert mutation is not None
    assert mutation.state is MutationState.COMMITTED
    assert store.writes == [("vote", "1")]
    assert harness.counts() == {"1": 11, "2": 5}


@pytest.mark.asyncio
async def test_report_patches_view_and_reconciles() -> None:
    harness = Harness(FakeReportStore())
    await harness.load()

    mutation = await harness.coordinator.submit_report("b", "red", 25)

    assert mutation is not None
    assert mutation.state is MutationState.COMMITTED
    assert mutation.delta["severity"] == "RED"
    speculative = harness.checkpoint_snapshots[1]
    assert speculative.speculative
    assert {view.id: view.report_count for view in speculative.items}["b"] == 2
    assert {view.id: view.report_count for view in harness.checkpoints.snapshot.items} == {"a": 3, "b": 2}
    assert [n.message for n in harness.notices] == [NOTICE_SYNCING, NOTICE_REPORT_OK]


@pytest.mark.asyncio
async def test_reports_and_votes_do_not_block_each_other() -> None:
    store = FakeReportStore(gate=asyncio.Event())
    harness = Harness(store)
    await harness.load()

    vote = asyncio.create_task(harness.coordinator.witness("1"))
    report = asyncio.create_task(harness.coordinator.submit_report("a", Severity.GREEN, 0))
    await asyncio.sleep(0)

    assert harness.coordinator.in_flight(MutationKind.VOTE) is not None
    assert harness.coordinator.in_flight(MutationKind.REPORT) is not None

    store.gate.set()
    results = await asyncio.gather(vote, report)

    assert all(result is not None and result.state is MutationState.COMMITTED for result in results)


@pytest.mark.asyncio
@pytest.mark.parametrize(("severity", "wait"), [("PURPLE", 5), (Severity.UNKNOWN, 5), ("GREEN", -1)])
async def test_invalid_report_is_rejected_before_any_patch(severity: str, wait: int) -> None:
    harness = Harness(FakeReportStore())
    await harness.load()
    generation = harness.checkpoints.snapshot.generation

    with pytest.raises(ValueError):
        await harness.coordinator.submit_report("a", severity, wait)

    assert harness.checkpoints.snapshot.generation == generation
    assert harness.store.writes == []


@pytest.mark.asyncio
async def test_new_item_is_not_shown_until_the_store_has_it() -> None:
    harness = Harness(FakeReportStore())
    await harness.load()

    with pytest.raises(ValueError):
        await harness.coordinator.submit_blacklist_item("   ", "Misc", "")

    mutation = await harness.coordinator.submit_blacklist_item(" Durian ", "Food", "Smell")

    assert mutation is not None
    assert mutation.target_id == "Durian"
    assert all(not snapshot.speculative for snapshot in harness.blacklist_snapshots)
    assert harness.counts() == {"1": 10, "2": 5, "3": 1}
