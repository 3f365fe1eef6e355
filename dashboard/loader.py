from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import requests

from dashboard.errors import NetworkError
from dashboard.schema import validate

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 5


def _session() -> requests.Session:
    session = requests.Session()
    session.trust_env = False
    return session


def read_config_file(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        document = json.load(handle)
    if not isinstance(document, dict):
        raise ValueError(f"Dashboard file {path} does not contain a JSON object")
    return document


class ConfigLoader:
    """Fetches the served dashboard document, falling back to local copies."""

    def __init__(
        self,
        url: str | None = None,
        fallback_path: str | Path | None = None,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url or None
        self.fallback_path = Path(fallback_path) if fallback_path else None
        self.timeout = timeout
        self._session = session or _session()
        self._last_good: dict[str, Any] | None = None

    @property
    def last_good(self) -> dict[str, Any] | None:
        return self._last_good

    def fetch(self) -> dict[str, Any]:
        if not self.url:
            raise NetworkError("No dashboard config URL configured")
        try:
            response = self._session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise NetworkError(f"Failed to fetch dashboard config from {self.url}: {exc}") from exc

        # The config API wraps the document as {"success": ..., "config": {...}}.
        if isinstance(payload, dict) and isinstance(payload.get("config"), dict) and "pages" not in payload:
            payload = payload["config"]
        if not isinstance(payload, dict):
            raise NetworkError(f"Dashboard config from {self.url} is not a JSON object")

        result = validate(payload)
        if result.valid:
            self._last_good = payload
        else:
            logger.warning(
                "Dashboard config from %s has %d schema issue(s); not keeping it as fallback",
                self.url,
                len(result.errors),
            )
        return payload

    def load(self) -> dict[str, Any]:
        if self.url:
            try:
                return self.fetch()
            except NetworkError as exc:
                logger.warning("%s; using fallback document", exc)

        if self._last_good is not None:
            return self._last_good
        if self.fallback_path is None:
            raise NetworkError("No dashboard config available: fetch failed and no fallback file configured")
        logger.info("Loading embedded dashboard config from %s", self.fallback_path)
        return read_config_file(self.fallback_path)


class VersionWatcher:
    """Compares the served build number against the running one."""

    def __init__(
        self,
        url: str,
        current_build: int,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self.current_build = current_build
        self.timeout = timeout
        self.latest: dict[str, Any] | None = None
        self._session = session or _session()

    def check(self) -> bool:
        try:
            response = self._session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
            build_number = int(payload["buildNumber"])
        except (requests.RequestException, ValueError, TypeError, KeyError) as exc:
            logger.debug("Version check failed: %s", exc)
            return False

        self.latest = payload
        if build_number > self.current_build:
            logger.info(
                "New dashboard build available: %s (current build %s)",
                payload.get("version", build_number),
                self.current_build,
            )
            return True
        return False
