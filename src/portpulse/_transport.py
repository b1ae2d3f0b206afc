"""HTTP transport with JSON decoding and error wrapping."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from portpulse.exceptions import TransportError, TransportTimeoutError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        allow_text: bool = False,
    ) -> Any:
        ...


class HttpTransport:
    """aiohttp-backed transport returning decoded JSON bodies.

    Every failure (network, timeout, non-2xx, invalid JSON) surfaces as a
    :class:`TransportError` so callers deal with one exception family.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        user_agent: str,
        timeout: float,
    ) -> None:
        self._http = http_session
        self._user_agent = user_agent
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        allow_text: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        An empty body (e.g. PostgREST ``return=minimal`` writes) decodes to
        ``None``. With *allow_text*, a body that is not JSON is returned as
        the stripped text instead of raising.
        """
        request_headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": self._user_agent,
        }
        if headers:
            request_headers.update(headers)

        _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=request_headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise TransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except TransportError:
            raise
        except TimeoutError as exc:
            raise TransportTimeoutError(f"Request to {url} timed out", endpoint=url) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {url} failed: {exc}", endpoint=url) from exc

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            if allow_text:
                return text.strip()
            raise TransportError(f"Invalid JSON from {url}: {text[:200]}", endpoint=url) from exc
