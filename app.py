from __future__ import annotations

import argparse
import asyncio
import logging
import os
import socket
import threading
import time

import requests
import uvicorn

from config.settings import settings
from dashboard.layout import RenderNode
from dashboard.loader import ConfigLoader, VersionWatcher
from dashboard.runtime import DashboardRuntime, RenderedPage
from dashboard.settings_store import SettingsStore

BACKEND_BASE = f"http://{settings.backend_host}:{settings.backend_port}"
LOGGER = logging.getLogger(__name__)
EMBED_BACKEND_WAIT_SECONDS = float(os.getenv("EMBED_BACKEND_WAIT_SECONDS", "20"))
BACKEND_HEALTH_TIMEOUT_SECONDS = float(os.getenv("BACKEND_HEALTH_TIMEOUT_SECONDS", "1.2"))
_BACKEND_THREAD: threading.Thread | None = None
API_SESSION = requests.Session()
API_SESSION.trust_env = False

# Console commands: gestures and key presses typed on stdin.
CONSOLE_GESTURES = {"n": "swipeLeft", "p": "swipeRight", "u": "swipeUp", "d": "swipeDown"}


def _backend_probe_host() -> str:
    host = str(settings.backend_host).strip()
    if host in {"0.0.0.0", "::", ""}:
        return "127.0.0.1"
    return host


def _backend_health_url() -> str:
    return f"http://{_backend_probe_host()}:{settings.backend_port}/health"


def _backend_port_open(timeout_seconds: float) -> bool:
    try:
        with socket.create_connection((_backend_probe_host(), int(settings.backend_port)), timeout=timeout_seconds):
            return True
    except OSError:
        return False


def _backend_ready(timeout_seconds: float = BACKEND_HEALTH_TIMEOUT_SECONDS) -> bool:
    try:
        response = API_SESSION.get(_backend_health_url(), timeout=timeout_seconds)
        if response.status_code != 200:
            return _backend_port_open(timeout_seconds=min(timeout_seconds, 1.0))
        payload = response.json() if response.content else {}
        if not isinstance(payload, dict) or payload.get("status") == "ok":
            return True
        return _backend_port_open(timeout_seconds=min(timeout_seconds, 1.0))
    except (requests.RequestException, ValueError):
        return _backend_port_open(timeout_seconds=min(timeout_seconds, 1.0))


def _run_embedded_backend() -> None:
    uvicorn.run(
        "backend.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


def _start_embedded_backend() -> None:
    global _BACKEND_THREAD
    if _BACKEND_THREAD and _BACKEND_THREAD.is_alive():
        return
    _BACKEND_THREAD = threading.Thread(target=_run_embedded_backend, name="dashboard-relay", daemon=True)
    _BACKEND_THREAD.start()


def _wait_backend_ready(max_wait_seconds: float) -> bool:
    deadline = time.monotonic() + max_wait_seconds
    while time.monotonic() < deadline:
        if _backend_ready():
            return True
        time.sleep(0.2)
    return _backend_ready()


def ensure_backend() -> None:
    if _backend_ready():
        LOGGER.info("Event relay already reachable at %s", BACKEND_BASE)
        return

    LOGGER.info("Starting embedded event relay on %s", BACKEND_BASE)
    _start_embedded_backend()
    if _wait_backend_ready(EMBED_BACKEND_WAIT_SECONDS):
        LOGGER.info("Embedded event relay is ready")
        return

    if not (_BACKEND_THREAD and _BACKEND_THREAD.is_alive()):
        raise RuntimeError(
            "Embedded event relay exited before becoming ready at "
            f"{BACKEND_BASE}. Please check relay startup logs."
        )
    LOGGER.warning(
        "Embedded event relay health probe timed out after %.1fs, but relay thread is alive; "
        "dashboard will continue to start.",
        EMBED_BACKEND_WAIT_SECONDS,
    )


def describe_tree(node: RenderNode, depth: int = 0) -> list[str]:
    label = node.panel_type or node.kind
    details: list[str] = []
    if node.id:
        details.append(node.id)
    if node.kind in {"text", "metric", "placeholder"}:
        details.append(str(node.content.get("display") or node.content.get("text") or node.content.get("title") or ""))
    if node.image is not None:
        details.append(f"image={node.image.uri} ({node.image.resize_mode})")
    if node.pressable:
        details.append("pressable")

    lines = [f"{'  ' * depth}{label} {' '.join(d for d in details if d)}".rstrip()]
    for child in node.children:
        lines.extend(describe_tree(child, depth + 1))
    return lines


def print_page(rendered: RenderedPage) -> None:
    plan = rendered.transition
    print(f"\n=== {rendered.page_id} ({plan.transition.type}, {plan.transition.duration:g}ms) ===")
    for line in describe_tree(rendered.tree):
        print(line)


async def _console(runtime: DashboardRuntime) -> None:
    print("commands: n/p/u/d = swipe, g <page> = goto, b = back, k <key> = key press, q = quit")
    while True:
        line = (await asyncio.to_thread(input)).strip()
        if not line:
            continue
        command, _, argument = line.partition(" ")
        if command == "q":
            return
        if command in CONSOLE_GESTURES:
            if not await runtime.handle_gesture(CONSOLE_GESTURES[command]):
                print(f"[ignored] gesture {CONSOLE_GESTURES[command]} is not configured")
        elif command == "g" and argument:
            if not runtime.navigator.goto(argument):
                print(f"[ignored] unknown page {argument}")
        elif command == "b":
            runtime.navigator.back()
        elif command == "k" and argument:
            await runtime.handle_key(argument)
        else:
            print(f"[ignored] {line}")


async def run_kiosk(interactive: bool) -> None:
    loader = ConfigLoader(url=settings.config_url, fallback_path=settings.fallback_config)
    watcher = None
    if settings.version_url:
        watcher = VersionWatcher(settings.version_url, settings.build_number)

    runtime = DashboardRuntime(
        loader=loader,
        settings=SettingsStore(),
        display=(settings.display_width, settings.display_height),
        token=settings.ws_token,
        version_watcher=watcher,
        version_poll_interval=settings.version_poll_interval_ms,
        reconnect_interval=settings.reconnect_interval_ms,
        max_reconnect_attempts=settings.max_reconnect_attempts,
        heartbeat_interval=settings.heartbeat_interval_ms,
    )
    runtime.page_listeners.append(print_page)
    runtime.refresh_listeners.append(lambda component_id: LOGGER.info("Refreshed %s", component_id))

    await runtime.start()
    print_page(runtime.render())
    try:
        if interactive:
            await _console(runtime)
        else:
            await asyncio.Event().wait()
    finally:
        await runtime.stop()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Headless kiosk dashboard runtime.")
    parser.add_argument("--no-console", action="store_true", help="Do not read commands from stdin")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    args = parse_args()

    # With EMBED_BACKEND=true one command starts both the relay and the kiosk runtime.
    if settings.embed_backend:
        ensure_backend()
    elif not _backend_ready():
        LOGGER.warning("Event relay is not reachable at %s", BACKEND_BASE)

    try:
        asyncio.run(run_kiosk(interactive=not args.no_console))
    except (KeyboardInterrupt, EOFError):
        LOGGER.info("Kiosk runtime stopped")


if __name__ == "__main__":
    main()
