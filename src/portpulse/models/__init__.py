"""Data models for store rows, traffic samples and published views."""

from portpulse.models._base import PortPulseBaseModel, Severity, Timestamp, parse_timestamp
from portpulse.models.blacklist import BlacklistItem
from portpulse.models.checkpoint import Checkpoint, Coordinate, ReportAggregate
from portpulse.models.scan import RiskLevel, ScanProvider, ScanResult, parse_scan_text
from portpulse.models.traffic import BaiduRoad, BaiduTrafficResponse, TrafficOutcome, TrafficReading, TrafficSample
from portpulse.models.view import CheckpointView

__all__ = [
    "BaiduRoad",
    "BaiduTrafficResponse",
    "BlacklistItem",
    "Checkpoint",
    "CheckpointView",
    "Coordinate",
    "PortPulseBaseModel",
    "ReportAggregate",
    "RiskLevel",
    "ScanProvider",
    "ScanResult",
    "Severity",
    "Timestamp",
    "TrafficOutcome",
    "TrafficReading",
    "TrafficSample",
    "parse_scan_text",
    "parse_timestamp",
]
