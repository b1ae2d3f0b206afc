#!/usr/bin/env python3
"""Watch the live checkpoint view.

Starts the refresh loops and prints the ranked checkpoint view every time a
new snapshot is published.

Usage
-----
Set environment variables and run::

    export PORTPULSE_STORE_URL="https://<project>.supabase.co"
    export PORTPULSE_STORE_KEY="<anon key>"
    export PORTPULSE_TRAFFIC_URL="https://example.com/api/baidu-traffic"
    python scripts/watch.py

Without ``PORTPULSE_STORE_URL`` the bundled demo store is used.

Options::

    --json               Output each snapshot as machine-readable JSON
    --cycles N           Stop after N publications (default: run until Ctrl-C)
    --blacklist          Also print the blacklist board once at startup
    --verbose, -v        Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from portpulse import (  # noqa: E402
    BlacklistItem,
    CheckpointView,
    Notice,
    PortPulseClient,
    PortPulseConfig,
    PortPulseError,
    ViewSnapshot,
)

_COLORS = {"RED": "\033[31m", "YELLOW": "\033[33m", "GREEN": "\033[32m"}
_RESET = "\033[0m"


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _format_snapshot(snapshot: ViewSnapshot[CheckpointView]) -> str:
    flags = []
    if snapshot.offline:
        flags.append("offline")
    if snapshot.speculative:
        flags.append("syncing")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    lines = [_section(f"Checkpoints, generation {snapshot.generation}{suffix}")]
    for view in snapshot.items:
        color = _COLORS.get(view.status.value, "")
        lines.append(
            f"  {color}{view.status.value:<7}{_RESET} {view.name} ({view.location})"
            f"  strictness={view.strictness_score}/10 wait={view.wait_time_minutes}min"
            f" reports={view.report_count} updated={view.last_updated}"
        )
        if view.traffic_description:
            lines.append(f"           traffic: {view.traffic_status.value} {view.traffic_description}")
    return "\n".join(lines)


def _format_blacklist(items: tuple[BlacklistItem, ...]) -> str:
    lines = [_section("Blacklist board")]
    for item in items:
        lines.append(f"  #{item.rank:<3} {item.name} [{item.category}] x{item.confiscated_count_today}  {item.reason}")
    return "\n".join(lines)


def _snapshot_to_dict(snapshot: ViewSnapshot[CheckpointView]) -> dict[str, Any]:
    return {
        "generation": snapshot.generation,
        "published_at": snapshot.published_at,
        "offline": snapshot.offline,
        "speculative": snapshot.speculative,
        "items": [view.model_dump(mode="json") for view in snapshot.items],
    }


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Print the live checkpoint view on every refresh",
    )
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--cycles", type=int, default=0, help="Stop after N publications (0 = forever)")
    parser.add_argument("--blacklist", action="store_true", help="Also print the blacklist board at startup")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        config = PortPulseConfig.from_env()
    except PortPulseError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    published: asyncio.Queue[ViewSnapshot[CheckpointView]] = asyncio.Queue()

    def _on_notice(notice: Notice) -> None:
        print(f"[{notice.level.value}] {notice.message}", file=sys.stderr)

    async with PortPulseClient(config, on_checkpoints=published.put_nowait, on_notice=_on_notice) as client:
        await client.start()
        if args.blacklist and not args.json_mode:
            print(_format_blacklist(client.blacklist.items))

        seen = 0
        while not args.cycles or seen < args.cycles:
            snapshot = await published.get()
            seen += 1
            if args.json_mode:
                print(json.dumps(_snapshot_to_dict(snapshot), default=str, ensure_ascii=False))
            else:
                print(_format_snapshot(snapshot))


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
