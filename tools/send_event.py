#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
import time
import uuid
from typing import Any

import requests

from config.settings import settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Post a dashboard event to the relay for broadcast to connected kiosks.",
    )
    parser.add_argument("--host", default=settings.backend_host, help="Relay host")
    parser.add_argument("--port", type=int, default=settings.backend_port, help="Relay port")
    parser.add_argument("--token", default=settings.ws_token, help="Relay token")
    parser.add_argument("--event-id", default=None, help="Event id (default: random)")
    parser.add_argument("--type", dest="event_type", default=None, help="Optional event type")

    actions = parser.add_argument_group("actions (repeatable, executed in order)")
    actions.add_argument("--navigate", action="append", default=[], metavar="PAGE", help="Navigate to a page")
    actions.add_argument(
        "--notify",
        action="append",
        default=[],
        metavar="TITLE:MESSAGE",
        help="Show a notification",
    )
    actions.add_argument("--severity", default="info", choices=["info", "success", "warning", "error"])
    actions.add_argument("--refresh", action="append", default=[], metavar="TARGET", help="Refresh 'all' or a panel id")
    actions.add_argument("--pause", action="store_true", help="Pause auto-transitions")
    actions.add_argument("--resume", action="store_true", help="Resume auto-transitions")
    actions.add_argument("--set", action="append", default=[], metavar="PATH=JSON", help="config.update action")
    actions.add_argument("--actions", default=None, help="Raw JSON list of actions (appended last)")
    return parser.parse_args(argv)


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def build_actions(args: argparse.Namespace) -> list[dict[str, Any]]:
    actions: list[dict[str, Any]] = []
    for target in args.navigate:
        actions.append({"type": "navigate", "target": target})
    for item in args.notify:
        title, _, message = item.partition(":")
        actions.append({"type": "notify", "title": title, "message": message or title, "severity": args.severity})
    for target in args.refresh:
        actions.append({"type": "refresh", "target": target})
    for item in args.set:
        path, _, raw = item.partition("=")
        actions.append({"type": "config.update", "path": path, "value": _parse_value(raw)})
    if args.pause:
        actions.append({"type": "transition.pause"})
    if args.resume:
        actions.append({"type": "transition.resume"})
    if args.actions:
        extra = json.loads(args.actions)
        if not isinstance(extra, list):
            raise ValueError("--actions must be a JSON list")
        actions.extend(extra)
    return actions


def build_event(args: argparse.Namespace) -> dict[str, Any]:
    event: dict[str, Any] = {
        "id": args.event_id or f"cli-{uuid.uuid4().hex[:8]}",
        "actions": build_actions(args),
        "timestamp": int(time.time() * 1000),
    }
    if args.event_type:
        event["type"] = args.event_type
    return event


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        event = build_event(args)
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2
    if not event["actions"]:
        print("[error] no actions given", file=sys.stderr)
        return 2

    session = requests.Session()
    session.trust_env = False
    url = f"http://{args.host}:{args.port}/api/events"
    try:
        response = session.post(url, json=event, headers={"Authorization": f"Bearer {args.token}"}, timeout=5)
        response.raise_for_status()
    except requests.RequestException as exc:
        print(f"[error] {url}: {exc}", file=sys.stderr)
        return 1

    result = response.json()
    print(f"[sent] event={event['id']} clients={result.get('clients')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
