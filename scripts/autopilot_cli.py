#!/usr/bin/env python3
"""Send one autopilot command and report whether the boat confirmed it.

Usage
-----
::

    export SIGNALK_HOST="192.168.1.10:3000"
    export SIGNALK_USERNAME="admin"
    export SIGNALK_PASSWORD="secret"

    python scripts/autopilot_cli.py status
    python scripts/autopilot_cli.py engage
    python scripts/autopilot_cli.py mode wind
    python scripts/autopilot_cli.py adjust -10
    python scripts/autopilot_cli.py tack port

Without credentials the script can request device access instead
(``--request-access``); approve the request in the server admin UI.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pysignalk import AutopilotControl, CommandResult, SignalKClient, SignalKConfig, SignalKError  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drive a SignalK autopilot from the command line")
    parser.add_argument("--request-access", action="store_true", help="Request a device token before connecting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Print API version, state and target heading")
    sub.add_parser("engage", help="Engage (auto)")
    sub.add_parser("disengage", help="Disengage (standby)")
    mode = sub.add_parser("mode", help="Switch mode")
    mode.add_argument("mode")
    adjust = sub.add_parser("adjust", help="Adjust target heading by DEGREES")
    adjust.add_argument("degrees", type=int)
    target = sub.add_parser("target", help="Set absolute target heading")
    target.add_argument("degrees", type=float)
    for name in ("tack", "gybe"):
        maneuver = sub.add_parser(name, help=f"{name.capitalize()} to a side")
        maneuver.add_argument("direction", choices=["port", "starboard"])
    dodge = sub.add_parser("dodge", help="Enter or leave dodge mode (V2 only)")
    dodge.add_argument("state", choices=["on", "off"])
    sub.add_parser("next-waypoint", help="Advance to the next waypoint")
    return parser.parse_args()


def _print_status(autopilot: AutopilotControl) -> None:
    heading = autopilot.target_heading
    print(f"  api       : {autopilot.api_version.value}")
    if autopilot.instance is not None:
        print(f"  instance  : {autopilot.instance.name} ({autopilot.instance.provider})")
    print(f"  state     : {autopilot.state or '---'}")
    print(f"  engaged   : {autopilot.engaged}")
    print(f"  target    : {f'{heading:.0f}°' if heading is not None else '---'}")


async def _dispatch(autopilot: AutopilotControl, args: argparse.Namespace) -> CommandResult | None:
    command = args.command
    if command == "status":
        _print_status(autopilot)
        return None
    if command == "engage":
        return await autopilot.engage()
    if command == "disengage":
        return await autopilot.disengage()
    if command == "mode":
        return await autopilot.set_mode(args.mode)
    if command == "adjust":
        return await autopilot.adjust_heading(args.degrees)
    if command == "target":
        return await autopilot.set_target_heading(args.degrees)
    if command == "tack":
        return await autopilot.tack(args.direction)
    if command == "gybe":
        return await autopilot.gybe(args.direction)
    if command == "dodge":
        return await autopilot.set_dodge(args.state == "on")
    return await autopilot.advance_waypoint()


async def _run(args: argparse.Namespace) -> int:
    config = SignalKConfig.from_env()
    async with SignalKClient(config) as client:
        if args.request_access:
            request = await client.request_device_access()
            print(f"Access request {request.request_id} submitted; approve it in the server admin UI...")
            token = await client.wait_for_device_access(request)
            print(f"Device token received (store it in SIGNALK_TOKEN): {token.token}")

        if not await client.connect(timeout=10.0):
            print("Could not connect to the delta stream", file=sys.stderr)
            return 2
        await client.refresh_snapshot()
        autopilot = await client.autopilot(on_phase=lambda phase: print(f"  ... {phase.value}"))

        try:
            result = await _dispatch(autopilot, args)
        except SignalKError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        if result is None:
            return 0
        print(f"{result.outcome.value}: {result.message}")
        return 0 if result.sent else 1


def main() -> int:
    args = _parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
