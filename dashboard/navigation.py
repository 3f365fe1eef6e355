from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from dashboard.schema import DashboardConfig, Page
from dashboard.transitions import ResolvedTransition, resolve_enter_transition

logger = logging.getLogger(__name__)

PageChangeCallback = Callable[[Page | None, Page, ResolvedTransition], Any]


class Navigator:
    """Tracks the current page of a dashboard and moves between pages."""

    def __init__(
        self,
        config: DashboardConfig,
        on_change: PageChangeCallback | None = None,
        history_limit: int = 20,
    ) -> None:
        self._config = config
        self._on_change = on_change
        self._history: deque[str] = deque(maxlen=history_limit)
        self._current = self._initial_page_id(config)

    @property
    def config(self) -> DashboardConfig:
        return self._config

    @property
    def current_page_id(self) -> str:
        return self._current

    @property
    def current_page(self) -> Page:
        page = self._config.find_page(self._current)
        assert page is not None
        return page

    @property
    def current_index(self) -> int:
        return self._config.page_ids().index(self._current)

    @property
    def page_count(self) -> int:
        return len(self._config.pages)

    @property
    def history(self) -> list[str]:
        return list(self._history)

    def next(self) -> str:
        ids = self._config.page_ids()
        self._switch(ids[(self.current_index + 1) % len(ids)])
        return self._current

    def previous(self) -> str:
        ids = self._config.page_ids()
        self._switch(ids[(self.current_index - 1) % len(ids)])
        return self._current

    def goto(self, page_id: str) -> bool:
        if self._config.find_page(page_id) is None:
            logger.warning("Ignoring navigation to unknown page %s", page_id)
            return False
        self._switch(page_id)
        return True

    def back(self) -> bool:
        while self._history:
            page_id = self._history.pop()
            if self._config.find_page(page_id) is not None:
                self._switch(page_id, record=False)
                return True
        return False

    def replace_config(self, config: DashboardConfig) -> None:
        previous = self._config.find_page(self._current)
        self._config = config
        self._history = deque(
            (page_id for page_id in self._history if config.find_page(page_id) is not None),
            maxlen=self._history.maxlen,
        )
        if config.find_page(self._current) is not None:
            return

        self._current = self._initial_page_id(config)
        self._notify(previous)

    def _switch(self, page_id: str, record: bool = True) -> None:
        if page_id == self._current:
            return
        previous = self.current_page
        if record:
            self._history.append(self._current)
        self._current = page_id
        self._notify(previous)

    def _notify(self, previous: Page | None) -> None:
        if self._on_change is None:
            return
        page = self.current_page
        self._on_change(previous, page, resolve_enter_transition(page, self._config))

    @staticmethod
    def _initial_page_id(config: DashboardConfig) -> str:
        initial = config.navigation.initial_page
        if config.find_page(initial) is not None:
            return initial
        fallback = config.pages[0].id
        logger.warning("initialPage %s not found, falling back to %s", initial, fallback)
        return fallback
