from __future__ import annotations

from typing import Any


class DashboardError(Exception):
    """Base class for dashboard core failures."""


class SchemaValidationError(DashboardError):
    def __init__(self, issues: list[Any]):
        self.issues = list(issues)
        summary = ", ".join(f"{issue.path or '<root>'}: {issue.message}" for issue in self.issues)
        super().__init__(f"Invalid dashboard config: {summary}")


class NetworkError(DashboardError):
    """Config fetch failed; callers fall back to a cached or embedded document."""


class AuthenticationError(DashboardError):
    def __init__(self, code: int | None, reason: str = ""):
        self.code = code
        self.reason = reason
        super().__init__(f"Realtime channel rejected credentials (close code {code})")


class ReconnectExhausted(DashboardError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Gave up reconnecting after {attempts} attempts")
