from __future__ import annotations

from dashboard.actions import ActionContext, ActionDispatcher
from dashboard.channel import ChannelClient
from dashboard.errors import (
    AuthenticationError,
    DashboardError,
    NetworkError,
    ReconnectExhausted,
    SchemaValidationError,
)
from dashboard.layout import PanelTreeInterpreter, RenderNode, build_layout_style
from dashboard.navigation import Navigator
from dashboard.runtime import DashboardRuntime
from dashboard.schema import DashboardConfig, ValidationIssue, ValidationResult, validate, validate_partial
from dashboard.styles import DEFAULT_THEME_TOKENS, resolve_style
from dashboard.transitions import plan_transition, resolve_enter_transition

__all__ = [
    "ActionContext",
    "ActionDispatcher",
    "AuthenticationError",
    "ChannelClient",
    "DEFAULT_THEME_TOKENS",
    "DashboardConfig",
    "DashboardError",
    "DashboardRuntime",
    "NetworkError",
    "Navigator",
    "PanelTreeInterpreter",
    "ReconnectExhausted",
    "RenderNode",
    "SchemaValidationError",
    "ValidationIssue",
    "ValidationResult",
    "build_layout_style",
    "plan_transition",
    "resolve_enter_transition",
    "resolve_style",
    "validate",
    "validate_partial",
]
