"""High-level async client: refresh loops, mutations and lookups in one place."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from portpulse._api.scan import analyze_luggage_image
from portpulse._offline import offline_blacklist, offline_views
from portpulse._transport import HttpTransport, Transport
from portpulse.config import PortPulseConfig
from portpulse.exceptions import PortPulseConfigError, PortPulseError
from portpulse.geo import nearest_checkpoint
from portpulse.models._base import Severity
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.scan import ScanProvider, ScanResult
from portpulse.models.view import CheckpointView
from portpulse.pipeline.enrichment import ProbeFn, run_pipeline
from portpulse.pipeline.probe import TrafficProbe, build_traffic_lookup
from portpulse.pipeline.ranking import rank_blacklist
from portpulse.state.events import Notice, RefreshMode
from portpulse.state.mutations import MutationCoordinator, PendingMutation
from portpulse.state.scheduler import RefreshScheduler
from portpulse.state.snapshot import ViewSnapshot
from portpulse.store import DemoReportStore, ReportStore, SupabaseReportStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PortPulseClient:
    """Async client for checkpoint status and the blacklist board.

    Usage::

        async with PortPulseClient(PortPulseConfig.from_env()) as client:
            await client.start()
            for view in client.checkpoints.items:
                print(view.name, view.status)

    Without a configured store URL the client runs against an in-memory
    :class:`~portpulse.store.DemoReportStore`.
    """

    def __init__(
        self,
        config: PortPulseConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        store: ReportStore | None = None,
        probe: ProbeFn | None = None,
        on_checkpoints: Callable[[ViewSnapshot[CheckpointView]], None] | None = None,
        on_blacklist: Callable[[ViewSnapshot[BlacklistItem]], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config.validate()
        self._external_session = session is not None
        self._http_session = session
        self._store_override = store
        self._probe_override = probe
        self._on_checkpoints = on_checkpoints
        self._on_blacklist = on_blacklist
        self._on_notice = on_notice
        self._clock = clock

        self._transport: Transport | None = None
        self._store: ReportStore | None = None
        self._checkpoints: RefreshScheduler[CheckpointView] | None = None
        self._blacklist: RefreshScheduler[BlacklistItem] | None = None
        self._mutations: MutationCoordinator | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PortPulseClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        transport = HttpTransport(
            self._http_session,
            user_agent=self._config.user_agent,
            timeout=self._config.request_timeout,
        )
        self._transport = transport
        self._store = self._store_override or self._build_store(transport)
        probe = self._probe_override or TrafficProbe(
            build_traffic_lookup(self._config, transport),
            timeout=self._config.traffic_timeout,
        )
        store = self._store

        async def _load_checkpoints() -> list[CheckpointView]:
            return await run_pipeline(store.list_checkpoints_with_aggregates, probe, now=self._clock())

        async def _load_blacklist() -> list[BlacklistItem]:
            return rank_blacklist(await store.list_blacklist())

        offline = self._config.offline_fallback
        self._checkpoints = RefreshScheduler(
            _load_checkpoints,
            name="checkpoints",
            interval=self._config.refresh_interval,
            offline_items=offline_views if offline else None,
            on_publish=self._on_checkpoints,
            on_notice=self._on_notice,
            clock=self._clock,
        )
        self._blacklist = RefreshScheduler(
            _load_blacklist,
            name="blacklist",
            interval=self._config.blacklist_refresh_interval,
            offline_items=offline_blacklist if offline else None,
            on_publish=self._on_blacklist,
            on_notice=self._on_notice,
            clock=self._clock,
        )
        self._mutations = MutationCoordinator(
            self._store,
            self._checkpoints,
            self._blacklist,
            on_notice=self._on_notice,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._mutations = None
        self._checkpoints = None
        self._blacklist = None

    def _build_store(self, transport: Transport) -> ReportStore:
        if self._config.is_store_configured:
            return SupabaseReportStore(self._config, transport)
        _logger.info("No report store configured, using the demo store")
        return DemoReportStore(clock=self._clock)

    # ------------------------------------------------------------------
    # Refresh loops
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Foreground-load both views, then keep them fresh in the background."""
        await self._require_checkpoints().start()
        await self._require_blacklist().start()

    async def stop(self) -> None:
        for scheduler in (self._checkpoints, self._blacklist):
            if scheduler is not None:
                await scheduler.stop()

    async def refresh(self, mode: RefreshMode = RefreshMode.FOREGROUND) -> ViewSnapshot[CheckpointView]:
        return await self._require_checkpoints().refresh(mode)

    async def refresh_blacklist(self, mode: RefreshMode = RefreshMode.FOREGROUND) -> ViewSnapshot[BlacklistItem]:
        return await self._require_blacklist().refresh(mode)

    @property
    def checkpoints(self) -> ViewSnapshot[CheckpointView]:
        """Current checkpoint view, most severe first."""
        return self._require_checkpoints().snapshot

    @property
    def blacklist(self) -> ViewSnapshot[BlacklistItem]:
        return self._require_blacklist().snapshot

    @property
    def is_loading(self) -> bool:
        return self._require_checkpoints().is_loading

    @property
    def store(self) -> ReportStore:
        if self._store is None:
            raise PortPulseError("Client not initialized. Use 'async with PortPulseClient(...) as client:'")
        return self._store

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def submit_report(
        self,
        checkpoint_id: str,
        severity: Severity | str,
        wait_minutes: int,
    ) -> PendingMutation | None:
        """Report the current state of a checkpoint.

        Returns ``None`` when another report is still being synced.
        """
        return await self._require_mutations().submit_report(checkpoint_id, severity, wait_minutes)

    async def witness(self, item_id: str) -> PendingMutation | None:
        return await self._require_mutations().witness(item_id)

    async def submit_blacklist_item(self, name: str, category: str, reason: str = "") -> PendingMutation | None:
        return await self._require_mutations().submit_blacklist_item(name, category, reason)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def nearest_checkpoint(self, lat: float, lng: float) -> tuple[CheckpointView, float] | None:
        """Closest checkpoint in the current view and its distance in km."""
        return nearest_checkpoint(self.checkpoints.items, lat, lng)

    async def analyze_luggage(
        self,
        image_b64: str,
        *,
        provider: ScanProvider | str = ScanProvider.QWEN,
    ) -> ScanResult:
        """Send a base64 JPEG to the analysis service.

        Service failures come back as a fallback :class:`ScanResult`; only a
        missing ``analyze_url`` raises.
        """
        if not self._config.analyze_url:
            raise PortPulseConfigError("analyze_url is not configured")
        return await analyze_luggage_image(
            self._require_transport(),
            self._config.analyze_url,
            image_b64,
            provider=ScanProvider(provider),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise PortPulseError("Client not initialized. Use 'async with PortPulseClient(...) as client:'")
        return self._transport

    def _require_checkpoints(self) -> RefreshScheduler[CheckpointView]:
        if self._checkpoints is None:
            raise PortPulseError("Client not initialized. Use 'async with PortPulseClient(...) as client:'")
        return self._checkpoints

    def _require_blacklist(self) -> RefreshScheduler[BlacklistItem]:
        if self._blacklist is None:
            raise PortPulseError("Client not initialized. Use 'async with PortPulseClient(...) as client:'")
        return self._blacklist

    def _require_mutations(self) -> MutationCoordinator:
        if self._mutations is None:
            raise PortPulseError("Client not initialized. Use 'async with PortPulseClient(...) as client:'")
        return self._mutations
