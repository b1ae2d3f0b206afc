"""Custom exception hierarchy for portpulse."""

from __future__ import annotations


class PortPulseError(Exception):
    """Base exception for all portpulse errors."""


class PortPulseConfigError(PortPulseError):
    """Invalid or missing configuration."""


class TransportError(PortPulseError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TransportTimeoutError(TransportError):
    """The request did not complete within its timeout."""


class StoreError(PortPulseError):
    """Report store call failed."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class StoreUnavailableError(StoreError):
    """Bulk read failed: the store is unreachable or returned garbage.

    The refresh scheduler falls back from this single error type.
    """


class StoreWriteError(StoreError):
    """A report/vote write was rejected by the store."""


class StoreTimeoutError(StoreWriteError):
    """A write did not reach the store in time.

    Kept distinct from :class:`StoreWriteError` so user messaging can differ;
    both mean "failed, please retry".
    """
