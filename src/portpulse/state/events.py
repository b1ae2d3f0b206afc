"""Refresh phases and user-facing notices."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class RefreshMode(StrEnum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"


class RefreshPhase(StrEnum):
    IDLE = "idle"
    LOADING_FOREGROUND = "loading-foreground"
    LOADING_BACKGROUND = "loading-background"
    PUBLISHED = "published"


class NoticeLevel(StrEnum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notice:
    """A message meant for the user (toast/banner), not for logs."""

    message: str
    level: NoticeLevel = NoticeLevel.INFO
    source: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
