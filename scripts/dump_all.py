#!/usr/bin/env python3
"""Dump everything the pysignalk library can see on a SignalK server.

This script connects, loads the REST snapshot of the self vessel, listens
to the delta stream for a few seconds, and prints every path with its raw
value, the converted display value and the unit symbol.  Useful to check
which paths a boat publishes and whether unit metadata arrives.

Usage
-----
Set environment variables and run::

    export SIGNALK_HOST="192.168.1.10:3000"
    export SIGNALK_USERNAME="admin"      # optional
    export SIGNALK_PASSWORD="secret"     # optional
    python scripts/dump_all.py

Options::

    --listen SECONDS     How long to collect deltas (default: 5)
    --prefix PATH        Only print paths under PATH (e.g. steering.autopilot)
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pysignalk import SignalKClient, SignalKConfig  # noqa: E402


def _section(title: str) -> str:
    bar = "=" * 72
    return f"\n{bar}\n  {title}\n{bar}"


def _collect(client: SignalKClient, prefix: str | None) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for path, point in sorted(client.store.snapshot().items()):
        if prefix and not (path == prefix or path.startswith(f"{prefix}.")):
            continue
        rows.append(
            {
                "path": path,
                "source": point.source,
                "value": point.value,
                "display": client.get_formatted_value(path),
                "symbol": client.get_unit_symbol(path),
                "timestamp": point.timestamp.isoformat(),
            }
        )
    return rows


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dump all data pysignalk can read for debugging / development.",
    )
    parser.add_argument("--listen", type=float, default=5.0, help="Seconds to collect deltas (default: 5)")
    parser.add_argument("--prefix", help="Only print paths under this prefix")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = SignalKConfig.from_env()
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "host": config.host,
    }

    async with SignalKClient(config) as client:
        connected = await client.connect()
        loaded = await client.refresh_snapshot()
        result["self_id"] = client.self_id
        result["stream_connected"] = connected
        result["snapshot_points"] = loaded
        if connected and args.listen > 0:
            await asyncio.sleep(args.listen)
        result["paths"] = _collect(client, args.prefix)
        result["metadata"] = client.metadata.to_map()

    if args.json_mode:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
    else:
        out: list[str] = [_section("pysignalk dump_all")]
        out.append(f"  time      : {result['timestamp']}")
        out.append(f"  host      : {result['host']}")
        out.append(f"  self      : {result['self_id']}")
        out.append(f"  stream    : {'connected' if result['stream_connected'] else 'NOT connected'}")
        out.append(f"  snapshot  : {result['snapshot_points']} point(s)")
        out.append(_section("PATHS"))
        for row in result["paths"]:
            symbol = f" [{row['symbol']}]" if row["symbol"] else ""
            out.append(f"  {row['path']:<55} {row['display']:>14}{symbol}  ({row['source'] or '-'})")
        out.append(_section("UNIT METADATA"))
        for path, meta in sorted(result["metadata"].items()):
            out.append(f"  {path:<55} {meta.get('formula', '-')}")
        payload = "\n".join(out)

    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"Written to {args.output}")
    else:
        print(payload)


if __name__ == "__main__":
    asyncio.run(main())
