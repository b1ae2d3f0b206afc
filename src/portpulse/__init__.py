"""portpulse - crowd-sourced checkpoint congestion merged with live road traffic."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("portpulse")
except PackageNotFoundError:
    __version__ = "0+local"
from portpulse.client import PortPulseClient
from portpulse.config import PortPulseConfig
from portpulse.exceptions import (
    PortPulseConfigError,
    PortPulseError,
    StoreError,
    StoreTimeoutError,
    StoreUnavailableError,
    StoreWriteError,
    TransportError,
    TransportTimeoutError,
)
from portpulse.models import (
    BlacklistItem,
    Checkpoint,
    CheckpointView,
    Coordinate,
    ReportAggregate,
    RiskLevel,
    ScanProvider,
    ScanResult,
    Severity,
    TrafficOutcome,
    TrafficSample,
)
from portpulse.state.events import Notice, NoticeLevel, RefreshMode, RefreshPhase
from portpulse.state.mutations import MutationKind, MutationState, PendingMutation
from portpulse.state.snapshot import ViewSnapshot
from portpulse.store import DemoReportStore, ReportStore, SupabaseReportStore

__all__ = [
    "__version__",
    "BlacklistItem",
    "Checkpoint",
    "CheckpointView",
    "Coordinate",
    "DemoReportStore",
    "MutationKind",
    "MutationState",
    "Notice",
    "NoticeLevel",
    "PendingMutation",
    "PortPulseClient",
    "PortPulseConfig",
    "PortPulseConfigError",
    "PortPulseError",
    "RefreshMode",
    "RefreshPhase",
    "ReportAggregate",
    "ReportStore",
    "RiskLevel",
    "ScanProvider",
    "ScanResult",
    "Severity",
    "StoreError",
    "StoreTimeoutError",
    "StoreUnavailableError",
    "StoreWriteError",
    "SupabaseReportStore",
    "TrafficOutcome",
    "TrafficSample",
    "TransportError",
    "TransportTimeoutError",
    "ViewSnapshot",
]
