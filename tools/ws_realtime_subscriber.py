#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime
from typing import Any

from config.settings import settings
from dashboard.channel import ChannelClient
from dashboard.errors import AuthenticationError, ReconnectExhausted


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Dashboard realtime channel monitor: prints events broadcast by the relay.",
    )
    parser.add_argument("--host", default=settings.backend_host, help="Relay host")
    parser.add_argument("--port", type=int, default=settings.backend_port, help="Relay port")
    parser.add_argument("--token", default=settings.ws_token, help="Token for /ws")
    parser.add_argument("--raw", action="store_true", help="Print raw event JSON")
    parser.add_argument("--wss", action="store_true", help="Use wss:// instead of ws://")
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=settings.max_reconnect_attempts,
        help="Reconnect attempts before giving up",
    )
    return parser.parse_args()


def format_timestamp(value: Any) -> str:
    if not value:
        return "-"
    if isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000).astimezone()
        return dt.strftime("%Y-%m-%d %H:%M:%S")
    raw = str(value).strip().replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return str(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def build_ws_url(host: str, port: int, use_wss: bool) -> str:
    scheme = "wss" if use_wss else "ws"
    return f"{scheme}://{host}:{port}/ws"


def format_event(event: dict[str, Any]) -> str:
    ts = format_timestamp(event.get("timestamp"))
    actions = event.get("actions") or []
    kinds = ",".join(str(action.get("type")) for action in actions if isinstance(action, dict)) or "-"
    return f"[{ts}] event={event.get('id', '-')} type={event.get('type') or '-'} actions={kinds}"


async def run_subscriber(url: str, token: str, show_raw: bool, max_attempts: int) -> None:
    stopped = asyncio.Event()

    def on_event(event: dict[str, Any]) -> None:
        if show_raw:
            print(json.dumps(event, ensure_ascii=False))
        else:
            print(format_event(event))

    def on_error(exc: Exception) -> None:
        print(f"[error] {exc}")
        if isinstance(exc, (AuthenticationError, ReconnectExhausted)):
            stopped.set()

    client = ChannelClient(
        url=url,
        token=token,
        on_event=on_event,
        on_connect=lambda: print("[connected] waiting for events..."),
        on_disconnect=lambda: print("[disconnected]"),
        on_error=on_error,
        reconnect_interval=settings.reconnect_interval_ms,
        max_reconnect_attempts=max_attempts,
        heartbeat_interval=settings.heartbeat_interval_ms,
    )

    print(f"[connect] {url}")
    client.connect()
    try:
        await stopped.wait()
    finally:
        await client.dispose()


async def main() -> None:
    args = parse_args()
    url = build_ws_url(args.host, args.port, args.wss)
    await run_subscriber(url=url, token=args.token, show_raw=args.raw, max_attempts=args.max_attempts)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n[exit] stopped by user")
