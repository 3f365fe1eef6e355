from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dashboard.schema import DashboardConfig, Page

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 300
DEFAULT_TYPE = "fade"
DEFAULT_EASING = "easeInOut"
DEFAULT_SLIDE_DIRECTION = "left"
SCALE_FROM = 0.95

EasingCurve = Callable[[float], float]


def _cubic_bezier(x1: float, y1: float, x2: float, y2: float) -> EasingCurve:
    def coordinate(t: float, p1: float, p2: float) -> float:
        return 3 * (1 - t) ** 2 * t * p1 + 3 * (1 - t) * t**2 * p2 + t**3

    def curve(progress: float) -> float:
        if progress <= 0:
            return 0.0
        if progress >= 1:
            return 1.0
        low, high = 0.0, 1.0
        for _ in range(40):
            mid = (low + high) / 2
            if coordinate(mid, x1, x2) < progress:
                low = mid
            else:
                high = mid
        return coordinate((low + high) / 2, y1, y2)

    return curve


def _ease_out(curve: EasingCurve) -> EasingCurve:
    return lambda t: 1 - curve(1 - t)


def _ease_in_out(curve: EasingCurve) -> EasingCurve:
    return lambda t: curve(t * 2) / 2 if t < 0.5 else 1 - curve((1 - t) * 2) / 2


_ease = _cubic_bezier(0.42, 0, 1, 1)
_quad: EasingCurve = lambda t: t * t  # noqa: E731
_cubic: EasingCurve = lambda t: t * t * t  # noqa: E731

EASING_CURVES: dict[str, EasingCurve] = {
    "linear": lambda t: t,
    "easeIn": _ease,
    "easeOut": _ease_out(_ease),
    "easeInOut": _ease_in_out(_ease),
    "easeInQuad": _quad,
    "easeOutQuad": _ease_out(_quad),
    "easeInOutQuad": _ease_in_out(_quad),
    "easeInCubic": _cubic,
    "easeOutCubic": _ease_out(_cubic),
    "easeInOutCubic": _ease_in_out(_cubic),
}


def easing_curve(name: str | None) -> EasingCurve:
    if name in EASING_CURVES:
        return EASING_CURVES[name]
    if name is not None:
        logger.warning("Unknown easing %s, using %s", name, DEFAULT_EASING)
    return EASING_CURVES[DEFAULT_EASING]


@dataclass(frozen=True)
class ResolvedTransition:
    type: str = DEFAULT_TYPE
    direction: str | None = None
    duration: float = DEFAULT_DURATION
    easing: str = DEFAULT_EASING
    delay: float = 0


@dataclass(frozen=True)
class AnimationTrack:
    property: str
    start: float
    end: float
    duration: float
    delay: float = 0

    def value_at(self, elapsed_ms: float, curve: EasingCurve) -> float:
        local = elapsed_ms - self.delay
        if local <= 0:
            return self.start
        if self.duration <= 0 or local >= self.duration:
            return self.end
        return self.start + (self.end - self.start) * curve(local / self.duration)


@dataclass(frozen=True)
class TransitionPlan:
    transition: ResolvedTransition
    tracks: list[AnimationTrack] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return max((track.delay + track.duration for track in self.tracks), default=0)

    def sample(self, elapsed_ms: float) -> dict[str, float]:
        curve = easing_curve(self.transition.easing)
        return {track.property: track.value_at(elapsed_ms, curve) for track in self.tracks}

    def initial_style(self) -> dict[str, float]:
        return self.sample(0)


def resolve_enter_transition(page: Page, config: DashboardConfig) -> ResolvedTransition:
    """Resolve the enter transition of a page.

    Each field is taken from the first layer that sets it: the page's own
    ``transitions.enter``, the navigation's page-specific entry, the
    navigation default, then the global ``config.transitions``.
    """
    navigation = config.navigation.transitions
    layers: list[Any] = [
        page.transitions.enter if page.transitions else None,
        (navigation.page_specific or {}).get(page.id) if navigation else None,
        navigation.default if navigation else None,
        config.config.transitions,
    ]

    def pick(name: str, default: Any) -> Any:
        for layer in layers:
            value = getattr(layer, name, None) if layer is not None else None
            if value is not None:
                return value
        return default

    return ResolvedTransition(
        type=pick("type", DEFAULT_TYPE),
        direction=pick("direction", None),
        duration=pick("duration", DEFAULT_DURATION),
        easing=pick("easing", DEFAULT_EASING),
        delay=pick("delay", 0),
    )


def plan_transition(transition: ResolvedTransition, width: float, height: float) -> TransitionPlan:
    duration = transition.duration
    delay = transition.delay

    if transition.type == "fade":
        tracks = [AnimationTrack("opacity", 0, 1, duration, delay)]
    elif transition.type == "slide":
        direction = transition.direction or DEFAULT_SLIDE_DIRECTION
        if direction in ("up", "down"):
            axis, start = "translateY", height if direction == "up" else -height
        else:
            axis, start = "translateX", width if direction == "left" else -width
        tracks = [
            AnimationTrack(axis, start, 0, duration, delay),
            AnimationTrack("opacity", 0, 1, duration / 2, delay),
        ]
    elif transition.type == "scale":
        tracks = [
            AnimationTrack("scale", SCALE_FROM, 1, duration, delay),
            AnimationTrack("opacity", 0, 1, duration, delay),
        ]
    else:
        tracks = []

    return TransitionPlan(transition=transition, tracks=tracks)
