"""Client configuration for portpulse."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from portpulse._constants import (
    BLACKLIST_REFRESH_SECONDS,
    CHECKPOINT_REFRESH_SECONDS,
    TRAFFIC_TIMEOUT_SECONDS,
    USER_AGENT,
)
from portpulse.exceptions import PortPulseConfigError

TRAFFIC_PROVIDERS = frozenset({"proxy", "baidu"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class PortPulseConfig:
    """Client configuration.

    Parameters
    ----------
    store_url : str
        Base URL of the report store (a PostgREST/Supabase project URL).
        Empty means "not configured": the client runs against the bundled
        demo store.
    store_key : str
        API key sent as ``apikey`` and bearer token to the store.
    traffic_provider : str
        ``"proxy"`` queries ``traffic_url`` which already returns a
        normalised severity; ``"baidu"`` queries the Baidu traffic API
        directly with ``baidu_ak``.
    traffic_url : str
        Proxy endpoint accepting ``lat``/``lng`` query parameters.
    baidu_ak : str
        Baidu Maps access key, required for the ``baidu`` provider.
    analyze_url : str
        Luggage analysis endpoint (AI-vision proxy).
    traffic_timeout : float
        Per-probe budget in seconds. A probe still running after this is
        cancelled and replaced by a fallback sample.
    refresh_interval : float
        Seconds between background refreshes of the checkpoint view.
    blacklist_refresh_interval : float
        Seconds between background refreshes of the blacklist board.
    request_timeout : float
        Total timeout in seconds for store requests.
    offline_fallback : bool
        Publish the bundled offline dataset when a foreground load fails.
    user_agent : str
        User agent sent with every request.
    """

    store_url: str = ""
    store_key: str = ""
    traffic_provider: str = "proxy"
    traffic_url: str = ""
    baidu_ak: str = ""
    analyze_url: str = ""
    traffic_timeout: float = TRAFFIC_TIMEOUT_SECONDS
    refresh_interval: float = CHECKPOINT_REFRESH_SECONDS
    blacklist_refresh_interval: float = BLACKLIST_REFRESH_SECONDS
    request_timeout: float = 10.0
    offline_fallback: bool = True
    user_agent: str = USER_AGENT

    @property
    def is_store_configured(self) -> bool:
        """Whether a real report store is configured."""
        return bool(self.store_url.strip())

    def validate(self) -> PortPulseConfig:
        """Check value ranges; returns ``self`` for chaining."""
        if self.traffic_provider not in TRAFFIC_PROVIDERS:
            raise PortPulseConfigError(
                f"Unknown traffic provider {self.traffic_provider!r} (expected one of {sorted(TRAFFIC_PROVIDERS)})"
            )
        if self.traffic_provider == "baidu" and not self.baidu_ak:
            raise PortPulseConfigError("traffic_provider='baidu' requires baidu_ak")
        for name in ("traffic_timeout", "refresh_interval", "blacklist_refresh_interval", "request_timeout"):
            if getattr(self, name) <= 0:
                raise PortPulseConfigError(f"{name} must be positive")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> PortPulseConfig:
        """Create configuration from environment variables.

        Reads ``PORTPULSE_*`` variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        PortPulseConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "PORTPULSE_STORE_URL": "store_url",
            "PORTPULSE_STORE_KEY": "store_key",
            "PORTPULSE_TRAFFIC_PROVIDER": "traffic_provider",
            "PORTPULSE_TRAFFIC_URL": "traffic_url",
            "PORTPULSE_BAIDU_AK": "baidu_ak",
            "PORTPULSE_ANALYZE_URL": "analyze_url",
            "PORTPULSE_USER_AGENT": "user_agent",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # numeric fields, handled separately
        _ENV_FLOAT_MAP = {
            "PORTPULSE_TRAFFIC_TIMEOUT": "traffic_timeout",
            "PORTPULSE_REFRESH_INTERVAL": "refresh_interval",
            "PORTPULSE_BLACKLIST_REFRESH_INTERVAL": "blacklist_refresh_interval",
            "PORTPULSE_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise PortPulseConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "offline_fallback" not in overrides:
            config_kwargs["offline_fallback"] = _env_bool(env.get("PORTPULSE_OFFLINE_FALLBACK"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
