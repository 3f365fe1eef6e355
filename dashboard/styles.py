from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "$"

COLOR_TOKENS: dict[str, Any] = {
    "$primary": "#00D9FF",
    "$secondary": "#B794F6",
    "$accent": "#FF6B9D",
    "$success": "#00FFA3",
    "$warning": "#FFB800",
    "$error": "#FF3366",
    "$info": "#00D9FF",
    "$background": "#0A0E1A",
    "$backgroundLight": "#131829",
    "$backgroundLighter": "#1A2035",
    "$backgroundDark": "#050812",
    "$surface": "#121825",
    "$surfaceLight": "#1A2338",
    "$surfaceDark": "#0D1220",
    "$text": "#E8F0FF",
    "$textSecondary": "#8BA3CC",
    "$textMuted": "#5A6B8C",
    "$textInverse": "#0A0E1A",
    "$border": "#2A3F5F",
    "$borderLight": "#3D5170",
    "$borderDark": "#1A2840",
    "$chart1": "#00D9FF",
    "$chart2": "#B794F6",
    "$chart3": "#00FFA3",
    "$chart4": "#FF6B9D",
    "$chart5": "#FFB800",
    "$chart6": "#6366F1",
    "$chart7": "#14B8A6",
    "$chart8": "#F472B6",
    "$highlight": "#00D9FF",
    "$overlay": "rgba(10, 14, 26, 0.85)",
    "$shadow": "rgba(0, 0, 0, 0.5)",
}

SPACING_TOKENS: dict[str, Any] = {
    "$0": 0,
    "$1": 4,
    "$2": 8,
    "$3": 12,
    "$4": 16,
    "$5": 20,
    "$6": 24,
    "$8": 32,
    "$10": 40,
    "$12": 48,
    "$16": 64,
    "$20": 80,
    "$24": 96,
}

# Size names are shared by radii and font sizes; font sizes win.
SIZE_TOKENS: dict[str, Any] = {
    "$none": 0,
    "$2xs": 10,
    "$xs": 12,
    "$sm": 14,
    "$md": 16,
    "$lg": 18,
    "$xl": 20,
    "$2xl": 24,
    "$3xl": 30,
    "$4xl": 36,
    "$5xl": 48,
    "$6xl": 60,
    "$full": 9999,
}

DEFAULT_THEME_TOKENS: dict[str, Any] = {**COLOR_TOKENS, **SPACING_TOKENS, **SIZE_TOKENS}


def style_to_dict(style: Any) -> dict[str, Any]:
    if style is None:
        return {}
    if isinstance(style, BaseModel):
        return style.model_dump(by_alias=True, exclude_none=True)
    if isinstance(style, Mapping):
        return dict(style)
    raise TypeError(f"Unsupported style value: {type(style).__name__}")


def resolve_token(value: Any, tokens: Mapping[str, Any] | None = None) -> Any:
    table = DEFAULT_THEME_TOKENS if tokens is None else tokens
    if not isinstance(value, str) or not value.startswith(TOKEN_PREFIX):
        return value
    if value in table:
        return table[value]
    logger.warning("Unknown style token %s, keeping literal value", value)
    return value


def resolve_style(style: Any, tokens: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Resolve ``$`` tokens in a style mapping into concrete values.

    ``bg`` is renamed to ``backgroundColor`` unless the latter is already set,
    in which case the explicit ``backgroundColor`` wins and ``bg`` is dropped.
    The input is never mutated.
    """
    resolved: dict[str, Any] = {}
    raw = style_to_dict(style)
    for key, value in raw.items():
        if key == "bg":
            if "backgroundColor" in raw:
                continue
            key = "backgroundColor"
        resolved[key] = resolve_token(value, tokens)
    return resolved
