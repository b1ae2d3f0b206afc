"""Report store endpoints (PostgREST dialect, as served by Supabase).

Endpoints:
  - GET  /rest/v1/checkpoint_status_view   (checkpoints joined with report stats)
  - POST /rest/v1/reports                  (new crowd report)
  - POST /rest/v1/rpc/increment_blacklist_count  (atomic witness vote)
  - GET  /rest/v1/blacklist_items          (board, ordered by count)
  - POST /rest/v1/blacklist_items          (new board entry)

It is internal to portpulse and may change at any time.
"""

from __future__ import annotations

import logging
from typing import Any

from portpulse._constants import BLACKLIST_PATH, CHECKPOINT_VIEW_PATH, REPORTS_PATH, VOTE_RPC_PATH
from portpulse._transport import Transport
from portpulse.config import PortPulseConfig
from portpulse.exceptions import (
    StoreTimeoutError,
    StoreUnavailableError,
    StoreWriteError,
    TransportError,
    TransportTimeoutError,
)

_logger = logging.getLogger(__name__)


def build_store_headers(config: PortPulseConfig, *, prefer: str | None = None) -> dict[str, str]:
    headers: dict[str, str] = {
        "apikey": config.store_key,
        "authorization": f"Bearer {config.store_key}",
    }
    if prefer:
        headers["prefer"] = prefer
    return headers


def _url(config: PortPulseConfig, path: str) -> str:
    return f"{config.store_url.rstrip('/')}{path}"


async def _read_rows(
    config: PortPulseConfig,
    transport: Transport,
    path: str,
    params: dict[str, str],
) -> list[Any]:
    try:
        body = await transport.request_json(
            "GET",
            _url(config, path),
            params=params,
            headers=build_store_headers(config),
        )
    except TransportError as exc:
        raise StoreUnavailableError(f"Reading {path} failed: {exc}", endpoint=path) from exc
    if body is None:
        return []
    if not isinstance(body, list):
        raise StoreUnavailableError(f"Expected a row list from {path}, got {type(body).__name__}", endpoint=path)
    return body


async def _write(
    config: PortPulseConfig,
    transport: Transport,
    path: str,
    payload: dict[str, Any],
) -> None:
    try:
        await transport.request_json(
            "POST",
            _url(config, path),
            json_body=payload,
            headers=build_store_headers(config, prefer="return=minimal"),
        )
    except TransportTimeoutError as exc:
        raise StoreTimeoutError(f"Write to {path} timed out", endpoint=path) from exc
    except TransportError as exc:
        raise StoreWriteError(f"Write to {path} failed: {exc}", endpoint=path) from exc


async def fetch_status_rows(config: PortPulseConfig, transport: Transport) -> list[Any]:
    """Fetch checkpoint rows carrying their aggregated report statistics."""
    return await _read_rows(config, transport, CHECKPOINT_VIEW_PATH, {"select": "*"})


async def fetch_blacklist_rows(config: PortPulseConfig, transport: Transport) -> list[Any]:
    return await _read_rows(
        config,
        transport,
        BLACKLIST_PATH,
        {"select": "*", "order": "confiscated_count_today.desc"},
    )


async def insert_report(
    config: PortPulseConfig,
    transport: Transport,
    *,
    checkpoint_id: str,
    status: str,
    wait_time_minutes: int,
) -> None:
    _logger.debug("Inserting report checkpoint=%s status=%s wait=%d", checkpoint_id, status, wait_time_minutes)
    await _write(
        config,
        transport,
        REPORTS_PATH,
        {"checkpoint_id": checkpoint_id, "status": status, "wait_time_minutes": wait_time_minutes},
    )


async def increment_vote(config: PortPulseConfig, transport: Transport, *, item_id: str) -> None:
    """Increment an item's counter server-side (atomic RPC)."""
    await _write(config, transport, VOTE_RPC_PATH, {"row_id": item_id})


async def insert_blacklist_item(
    config: PortPulseConfig,
    transport: Transport,
    *,
    name: str,
    category: str,
    reason: str,
) -> None:
    await _write(
        config,
        transport,
        BLACKLIST_PATH,
        {"name": name, "category": category, "reason": reason, "confiscated_count_today": 1},
    )
