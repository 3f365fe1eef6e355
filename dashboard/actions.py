"""
Event-action dispatcher.

Maps an action ``type`` to a handler. Built-in handlers cover the realtime
event vocabulary (``navigate``, ``notify``, ``config.update``, ``refresh``,
``transition.pause``/``transition.resume``, ``custom``) and the navigation and
notification actions used inside dashboard documents (``navigateTo``,
``navigateNext``, ``navigatePrevious``, ``navigateBack``, ``notification``).

Handler failures are logged and never escape ``execute``; actions of a batch
run one after another in list order.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from dashboard.events import (
    DEFAULT_NOTIFY_DURATION_MS,
    ConfigUpdateAction,
    CustomAction,
    DashboardEvent,
    NavigateAction,
    NotifyAction,
    RefreshAction,
)

logger = logging.getLogger(__name__)

ActionHandler = Callable[[dict[str, Any], "ActionContext"], Any]
ModelT = TypeVar("ModelT", bound=BaseModel)


class NavigationSink(Protocol):
    def goto(self, page_id: str) -> Any: ...

    def next(self) -> Any: ...

    def previous(self) -> Any: ...

    def back(self) -> Any: ...


class SettingsSink(Protocol):
    def update(self, patch: dict[str, Any], persistent: bool = False) -> Any: ...

    def toggle_auto_transition(self, enabled: bool | None = None) -> Any: ...


class NotificationSink(Protocol):
    def show(self, title: str, message: str, severity: str = "info", duration: int = 3000) -> Any: ...


class ConfigSink(Protocol):
    def reload(self) -> Any: ...

    def refresh_component(self, component_id: str) -> Any: ...


@dataclass
class ActionContext:
    navigation: NavigationSink | None = None
    settings: SettingsSink | None = None
    notifications: NotificationSink | None = None
    config: ConfigSink | None = None
    custom_handlers: dict[str, Callable[..., Any]] = field(default_factory=dict)


def build_patch(path: str, value: Any) -> dict[str, Any]:
    parts = path.split(".")
    patch: dict[str, Any] = {}
    current = patch
    for part in parts[:-1]:
        current[part] = {}
        current = current[part]
    current[parts[-1]] = value
    return patch


def _as_payload(action: Any) -> dict[str, Any] | None:
    if isinstance(action, BaseModel):
        return action.model_dump(by_alias=True, exclude_none=True)
    if isinstance(action, Mapping):
        return dict(action)
    return None


def _parse(model: type[ModelT], action: dict[str, Any]) -> ModelT | None:
    try:
        return model.model_validate(action)
    except ValidationError as exc:
        logger.warning(
            "Skipping %s action with missing or invalid fields: %s",
            action.get("type"),
            exc.errors(include_url=False),
        )
        return None


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class ActionDispatcher:
    def __init__(self, context: ActionContext) -> None:
        self.context = context
        self._handlers: dict[str, ActionHandler] = {}
        self._register_default_handlers()

    @property
    def handler_types(self) -> list[str]:
        return sorted(self._handlers)

    def register_handler(self, action_type: str, handler: ActionHandler) -> None:
        self._handlers[action_type] = handler
        logger.debug("Registered handler for action type %s", action_type)

    async def execute(self, action: Any) -> None:
        payload = _as_payload(action)
        if payload is None:
            logger.warning("Ignoring action that is not a mapping: %r", action)
            return

        action_type = payload.get("type")
        handler = self._handlers.get(action_type) if isinstance(action_type, str) else None
        if handler is None:
            logger.warning("No handler for action type: %s", action_type)
            return

        try:
            logger.debug("Executing action %s", action_type)
            await _maybe_await(handler(payload, self.context))
        except Exception:
            logger.exception("Error executing action %s", action_type)

    async def execute_all(self, actions: Iterable[Any]) -> None:
        for action in actions:
            await self.execute(action)

    async def process_event(self, event: DashboardEvent | Mapping[str, Any]) -> None:
        if not isinstance(event, DashboardEvent):
            try:
                event = DashboardEvent.model_validate(event)
            except ValidationError as exc:
                logger.warning("Ignoring malformed dashboard event: %s", exc.errors(include_url=False))
                return

        logger.info("Processing event %s", event.id)
        if not event.actions:
            logger.warning("Event %s has no actions", event.id)
            return
        await self.execute_all(event.actions)

    def _register_default_handlers(self) -> None:
        self.register_handler("navigate", self._navigate)
        self.register_handler("navigateTo", self._navigate)
        self.register_handler("navigateNext", self._navigate_step("next"))
        self.register_handler("navigatePrevious", self._navigate_step("previous"))
        self.register_handler("navigateBack", self._navigate_step("back"))
        self.register_handler("notify", self._notify)
        self.register_handler("notification", self._notification)
        self.register_handler("config.update", self._config_update)
        self.register_handler("refresh", self._refresh)
        self.register_handler("transition.pause", self._toggle_transitions(False))
        self.register_handler("transition.resume", self._toggle_transitions(True))
        self.register_handler("custom", self._custom)

    @staticmethod
    def _navigate(action: dict[str, Any], ctx: ActionContext) -> Any:
        parsed = _parse(NavigateAction, action)
        if parsed is None:
            return None
        if ctx.navigation is None:
            logger.error("Navigation is not available for %s", parsed.type)
            return None
        if parsed.params:
            logger.debug("Navigation params for %s are not used: %s", parsed.target, parsed.params)
        logger.info("Navigating to %s", parsed.target)
        return ctx.navigation.goto(parsed.target)

    @staticmethod
    def _navigate_step(method: str) -> ActionHandler:
        def handler(action: dict[str, Any], ctx: ActionContext) -> Any:
            if ctx.navigation is None:
                logger.error("Navigation is not available for %s", action.get("type"))
                return None
            return getattr(ctx.navigation, method)()

        return handler

    @staticmethod
    def _notify(action: dict[str, Any], ctx: ActionContext) -> Any:
        parsed = _parse(NotifyAction, action)
        if parsed is None:
            return None
        if ctx.notifications is None:
            logger.error("Notification service is not available")
            return None
        return ctx.notifications.show(
            title=parsed.title,
            message=parsed.message,
            severity=parsed.severity or "info",
            duration=parsed.duration or DEFAULT_NOTIFY_DURATION_MS,
        )

    @classmethod
    def _notification(cls, action: dict[str, Any], ctx: ActionContext) -> Any:
        # Document notifications carry no title.
        return cls._notify({"title": "", **action}, ctx)

    @staticmethod
    def _config_update(action: dict[str, Any], ctx: ActionContext) -> Any:
        parsed = _parse(ConfigUpdateAction, action)
        if parsed is None:
            return None
        if ctx.settings is None:
            logger.error("Settings are not available for config.update")
            return None
        logger.info("Updating setting %s = %r (persistent=%s)", parsed.path, parsed.value, parsed.persistent)
        return ctx.settings.update(build_patch(parsed.path, parsed.value), persistent=parsed.persistent)

    @staticmethod
    def _refresh(action: dict[str, Any], ctx: ActionContext) -> Any:
        parsed = _parse(RefreshAction, action)
        if parsed is None:
            return None
        if ctx.config is None:
            logger.error("Config management is not available for refresh")
            return None
        if parsed.target in (None, "all"):
            logger.info("Refreshing dashboard")
            return ctx.config.reload()
        logger.info("Refreshing component %s", parsed.target)
        return ctx.config.refresh_component(parsed.target)

    @staticmethod
    def _toggle_transitions(enabled: bool) -> ActionHandler:
        def handler(action: dict[str, Any], ctx: ActionContext) -> Any:
            if ctx.settings is None:
                logger.error("Settings are not available for %s", action.get("type"))
                return None
            logger.info("%s auto-transitions", "Resuming" if enabled else "Pausing")
            return ctx.settings.toggle_auto_transition(enabled)

        return handler

    @staticmethod
    async def _custom(action: dict[str, Any], ctx: ActionContext) -> None:
        parsed = _parse(CustomAction, action)
        if parsed is None:
            return
        handler = ctx.custom_handlers.get(parsed.handler)
        if handler is None:
            logger.warning("Custom handler not found: %s", parsed.handler)
            return
        logger.info("Executing custom handler %s", parsed.handler)
        await _maybe_await(handler(parsed.params or {}))
