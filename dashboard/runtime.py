from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from dashboard.actions import ActionContext, ActionDispatcher
from dashboard.channel import (
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_INTERVAL_MS,
    ChannelClient,
    Connector,
)
from dashboard.heartbeat import DEFAULT_HEARTBEAT_INTERVAL_MS
from dashboard.layout import PanelTreeInterpreter, RenderNode
from dashboard.loader import ConfigLoader, VersionWatcher
from dashboard.navigation import Navigator
from dashboard.notifications import NotificationCenter
from dashboard.scheduler import LoopScheduler, Scheduler, TimerHandle
from dashboard.schema import DashboardConfig, Page, ValidationResult, dump_config, require_valid, validate
from dashboard.settings_store import SettingsStore
from dashboard.transitions import ResolvedTransition, TransitionPlan, plan_transition, resolve_enter_transition

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY = (800, 480)

GESTURE_EVENTS = {
    "swipeLeft": "onSwipeLeft",
    "swipeRight": "onSwipeRight",
    "swipeUp": "onSwipeUp",
    "swipeDown": "onSwipeDown",
    "idle": "onIdle",
}


@dataclass
class RenderedPage:
    page_id: str
    tree: RenderNode
    transition: TransitionPlan


class DashboardRuntime:
    """Runs one dashboard document: navigation, rendering, actions and the realtime channel."""

    def __init__(
        self,
        document: DashboardConfig | Mapping[str, Any] | None = None,
        settings: SettingsStore | None = None,
        notifications: NotificationCenter | None = None,
        scheduler: Scheduler | None = None,
        loader: ConfigLoader | None = None,
        saver: Callable[[dict[str, Any]], Any] | None = None,
        custom_handlers: dict[str, Callable[..., Any]] | None = None,
        display: tuple[int, int] = DEFAULT_DISPLAY,
        token: str | None = None,
        connector: Connector | None = None,
        version_watcher: VersionWatcher | None = None,
        version_poll_interval: float = 10000,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL_MS,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL_MS,
    ) -> None:
        if document is None:
            if loader is None:
                raise ValueError("DashboardRuntime needs a document or a loader")
            document = loader.load()

        self.config = require_valid(document)
        self.settings = settings or SettingsStore()
        self.scheduler = scheduler or LoopScheduler()
        self.notifications = notifications or NotificationCenter(self.scheduler)
        self.display = display
        self.token = token
        self.channel: ChannelClient | None = None
        self.last_transition: TransitionPlan | None = None
        self.refresh_listeners: list[Callable[[str], Any]] = []
        self.page_listeners: list[Callable[[RenderedPage], Any]] = []

        self._loader = loader
        self._saver = saver
        self._connector = connector
        self._version_watcher = version_watcher
        self._version_poll_interval = version_poll_interval
        self._reconnect_interval = reconnect_interval
        self._max_reconnect_attempts = max_reconnect_attempts
        self._heartbeat_interval = heartbeat_interval
        self._rotation: TimerHandle | None = None
        self._version_timer: TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started = False

        self.navigator = Navigator(self.config, on_change=self._on_page_change)
        self.interpreter = PanelTreeInterpreter(self.config, on_navigate=self.navigator.goto)
        self.dispatcher = ActionDispatcher(
            ActionContext(
                navigation=self.navigator,
                settings=self.settings,
                notifications=self.notifications,
                config=self,
                custom_handlers=dict(custom_handlers or {}),
            )
        )
        self._auto_enabled = self.settings.auto_transition_enabled
        self.settings.subscribe(self._on_settings_change)

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        self._started = True
        self._sync_auto_rotation()
        await self._run_page_event(self.navigator.current_page, "onLoad")

        websocket = self.config.config.websocket
        if websocket is not None:
            max_attempts = websocket.max_reconnect_attempts
            if websocket.reconnect is False:
                max_attempts = 0
            self.channel = ChannelClient(
                url=websocket.url,
                token=self.token,
                on_event=self.dispatcher.process_event,
                on_connect=lambda: logger.info("Dashboard connected to event server"),
                on_disconnect=lambda: logger.info("Dashboard disconnected from event server"),
                on_error=lambda exc: logger.warning("Realtime channel error: %s", exc),
                reconnect_interval=websocket.reconnect_interval or self._reconnect_interval,
                max_reconnect_attempts=int(self._max_reconnect_attempts if max_attempts is None else max_attempts),
                heartbeat_interval=self._heartbeat_interval,
                connector=self._connector,
                scheduler=self.scheduler,
            )
            self.channel.connect()

        if self._version_watcher is not None and self._version_timer is None:
            self._version_timer = self.scheduler.call_every(self._version_poll_interval, self.check_version)

    async def stop(self) -> None:
        self._started = False
        self._cancel_rotation()
        if self._version_timer is not None:
            self._version_timer.cancel()
            self._version_timer = None
        if self.channel is not None:
            await self.channel.dispose()
            self.channel = None
        self.notifications.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # -- config ----------------------------------------------------------

    def apply_config(self, candidate: Any) -> ValidationResult:
        result = validate(candidate)
        if not result.valid:
            logger.error(
                "Rejected dashboard config (%d issues): %s",
                len(result.errors),
                "; ".join(f"{issue.path or '<root>'}: {issue.message}" for issue in result.errors),
            )
            return result

        self.config = result.data
        self.interpreter = PanelTreeInterpreter(self.config, on_navigate=self.navigator.goto)
        self.navigator.replace_config(self.config)
        self._sync_auto_rotation()
        logger.info("Applied dashboard config version %s (%d pages)", self.config.version, len(self.config.pages))
        return result

    async def reload(self) -> ValidationResult | None:
        if self._loader is None:
            logger.warning("Reload requested but no config loader is configured")
            return None
        document = await asyncio.to_thread(self._loader.load)
        return self.apply_config(document)

    async def check_version(self) -> bool:
        if self._version_watcher is None:
            return False
        if not await asyncio.to_thread(self._version_watcher.check):
            return False
        await self.reload()
        latest = self._version_watcher.latest or {}
        if "buildNumber" in latest:
            self._version_watcher.current_build = int(latest["buildNumber"])
        return True

    def refresh_component(self, component_id: str) -> None:
        logger.info("Refresh requested for component %s", component_id)
        for listener in list(self.refresh_listeners):
            listener(component_id)

    def save(self) -> bool:
        if self._saver is None:
            logger.warning("Save requested but no config saver is configured")
            return False
        self._saver(dump_config(self.config))
        return True

    # -- rendering -------------------------------------------------------

    def render(self) -> RenderedPage:
        page = self.navigator.current_page
        plan = self.last_transition or self._plan(resolve_enter_transition(page, self.config))
        return RenderedPage(page_id=page.id, tree=self.interpreter.render_page(page), transition=plan)

    # -- input -----------------------------------------------------------

    async def handle_gesture(self, gesture: str) -> bool:
        event_type = GESTURE_EVENTS.get(gesture)
        if event_type is None:
            logger.warning("Unknown gesture %s", gesture)
            return False
        event = self.config.navigation.find_event(event_type)
        if event is None:
            return False

        if event.actions:
            await self.dispatcher.execute_all(event.actions)
        elif event_type == "onSwipeLeft":
            self.navigator.next()
        elif event_type == "onSwipeRight":
            self.navigator.previous()
        return True

    async def handle_key(self, key: str) -> int:
        handled = 0
        for event in self.config.global_events or []:
            if event.type == "onKeyPress" and event.key in (None, key):
                await self.dispatcher.execute_all(event.actions)
                handled += 1
        return handled

    def press(self, panel_id: str) -> bool:
        node = self.render().tree.find(panel_id)
        if node is None or not node.pressable:
            return False
        node.press()
        return True

    # -- internals -------------------------------------------------------

    def _plan(self, transition: ResolvedTransition) -> TransitionPlan:
        width, height = self.display
        return plan_transition(transition, width, height)

    def _on_page_change(self, previous: Page | None, page: Page, transition: ResolvedTransition) -> None:
        self.last_transition = self._plan(transition)
        logger.info("Page changed %s -> %s (%s)", previous.id if previous else None, page.id, transition.type)
        if previous is not None:
            self._spawn(self._run_page_event(previous, "onUnload"))
        self._spawn(self._run_page_event(page, "onLoad"))

        if self.page_listeners:
            rendered = self.render()
            for listener in list(self.page_listeners):
                listener(rendered)

    async def _run_page_event(self, page: Page, event_type: str) -> None:
        for event in page.events or []:
            if event.type == event_type:
                await self.dispatcher.execute_all(event.actions)

    def _on_settings_change(self, _values: dict[str, Any]) -> None:
        enabled = self.settings.auto_transition_enabled
        if enabled != self._auto_enabled:
            self._auto_enabled = enabled
            self._sync_auto_rotation()

    def _sync_auto_rotation(self) -> None:
        self._cancel_rotation()
        if not self._started:
            return
        event = self.config.navigation.find_event("onSchedule")
        if event is None or event.schedule is None or not event.schedule.interval:
            return
        if not self.settings.auto_transition_enabled:
            return

        if event.schedule.rotate:
            self._rotation = self.scheduler.call_every(event.schedule.interval, self.navigator.next)
        elif event.actions:
            actions = list(event.actions)
            self._rotation = self.scheduler.call_every(
                event.schedule.interval, lambda: self.dispatcher.execute_all(actions)
            )

    def _cancel_rotation(self) -> None:
        if self._rotation is not None:
            self._rotation.cancel()
            self._rotation = None

    def _spawn(self, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop; skipping page event actions")
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
