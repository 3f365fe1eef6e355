from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from copy import deepcopy
from typing import Any

logger = logging.getLogger(__name__)

AUTO_TRANSITION_KEY = "autoTransitionEnabled"
SETTING_ALIASES = {"autoTransition": AUTO_TRANSITION_KEY}

DEFAULT_SETTINGS: dict[str, Any] = {
    AUTO_TRANSITION_KEY: True,
    "useDemoConfig": False,
}

SettingsListener = Callable[[dict[str, Any]], Any]


def deep_merge(target: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            deep_merge(current, value)
        else:
            target[key] = deepcopy(value)
    return target


class SettingsStore:
    """Display settings changed at runtime by ``config.update`` actions."""

    def __init__(
        self,
        initial: Mapping[str, Any] | None = None,
        persist: Callable[[dict[str, Any]], Any] | None = None,
    ) -> None:
        self._values: dict[str, Any] = deepcopy(DEFAULT_SETTINGS)
        if initial:
            deep_merge(self._values, self._normalize(initial))
        self._persist = persist
        self._listeners: list[SettingsListener] = []

    @property
    def auto_transition_enabled(self) -> bool:
        return bool(self._values.get(AUTO_TRANSITION_KEY))

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(SETTING_ALIASES.get(key, key), default)

    def snapshot(self) -> dict[str, Any]:
        return deepcopy(self._values)

    def update(self, patch: Mapping[str, Any], persistent: bool = False) -> dict[str, Any]:
        deep_merge(self._values, self._normalize(patch))
        values = self.snapshot()

        if persistent:
            if self._persist is None:
                logger.warning("Persistent settings update requested but no settings store is configured")
            else:
                self._persist(values)

        for listener in list(self._listeners):
            try:
                listener(values)
            except Exception:
                logger.exception("Settings listener failed")
        return values

    def toggle_auto_transition(self, enabled: bool | None = None) -> bool:
        value = (not self.auto_transition_enabled) if enabled is None else bool(enabled)
        self.update({AUTO_TRANSITION_KEY: value})
        return value

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @staticmethod
    def _normalize(patch: Mapping[str, Any]) -> dict[str, Any]:
        return {SETTING_ALIASES.get(key, key): value for key, value in patch.items()}
