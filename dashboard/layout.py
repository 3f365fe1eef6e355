from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from dashboard.schema import DashboardConfig, LabelConfig, LayoutConfig, LocalSource, Page, PaddingConfig, Panel
from dashboard.styles import resolve_style

logger = logging.getLogger(__name__)

FULL_SIZE = "100%"
LABEL_INSET = 8
LABEL_Z_INDEX = 10
MISSING_VALUE = "--"

BACKGROUND_URL_PATTERN = re.compile(r"url\(['\"]?([^'\"()]+)['\"]?\)")
BACKGROUND_KEYS = ("backgroundImage", "backgroundSize", "backgroundPosition", "backgroundRepeat")
RESIZE_MODES = {"contain": "contain", "cover": "cover", "100% 100%": "stretch"}

_PADDING_KEYS = {
    "top": "paddingTop",
    "right": "paddingRight",
    "bottom": "paddingBottom",
    "left": "paddingLeft",
    "horizontal": "paddingHorizontal",
    "vertical": "paddingVertical",
}

_TEXT_STYLE = {"fontSize": 14, "color": "#FFFFFF"}
_LABEL_TEXT_STYLE = {"fontSize": 12, "color": "rgba(255, 255, 255, 0.7)"}
_METRIC_STYLE = {"fontSize": 32, "fontWeight": "bold", "color": "#FFFFFF"}
_PLACEHOLDER_STYLE = {
    "flex": 1,
    "justifyContent": "center",
    "alignItems": "center",
    "backgroundColor": "rgba(255, 255, 255, 0.05)",
    "borderRadius": 8,
    "padding": 16,
}


@dataclass(frozen=True)
class ImageSource:
    uri: str
    resize_mode: str = "cover"


@dataclass
class RenderNode:
    kind: str
    id: str | None = None
    style: dict[str, Any] = field(default_factory=dict)
    children: list[RenderNode] = field(default_factory=list)
    image: ImageSource | None = None
    on_press: Callable[[], None] | None = None
    content: dict[str, Any] = field(default_factory=dict)
    panel_type: str | None = None

    @property
    def pressable(self) -> bool:
        return self.on_press is not None

    def press(self) -> None:
        if self.on_press is not None:
            self.on_press()

    def find(self, node_id: str) -> RenderNode | None:
        if self.id == node_id:
            return self
        for child in self.children:
            found = child.find(node_id)
            if found is not None:
                return found
        return None

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


def build_layout_style(layout: LayoutConfig | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(layout, Mapping):
        layout = LayoutConfig.model_validate(layout)

    style: dict[str, Any] = {}
    if layout.type == "flex":
        style["display"] = "flex"
        style["flexDirection"] = layout.direction or "column"
        if layout.justify:
            style["justifyContent"] = layout.justify
        if layout.align:
            style["alignItems"] = layout.align
        if layout.wrap is not None:
            style["flexWrap"] = "wrap" if layout.wrap else "nowrap"
    elif layout.type == "grid":
        # Approximated as wrapped row flex; columns/rows/templates are not applied.
        style["display"] = "flex"
        style["flexDirection"] = "row"
        style["flexWrap"] = "wrap"
    elif layout.type == "absolute":
        style["position"] = "relative"

    # A full-size dimension conflicts with flex-grow on the parent.
    for key in ("height", "width"):
        value = getattr(layout, key)
        if value is None or value == FULL_SIZE:
            continue
        style[key] = value

    if layout.gap is not None:
        style["gap"] = layout.gap

    padding = layout.padding
    if isinstance(padding, PaddingConfig):
        for attr, key in _PADDING_KEYS.items():
            value = getattr(padding, attr)
            if value is not None:
                style[key] = value
    elif padding is not None:
        style["padding"] = padding

    return style


def label_position_style(position: str, offset: Mapping[str, Any] | None = None) -> dict[str, Any]:
    offset = offset or {}
    dx = offset.get("x") or 0
    dy = offset.get("y") or 0
    near_x = LABEL_INSET + dx
    near_y = LABEL_INSET + dy

    vertical, _, horizontal = position.partition("-")
    if position == "center":
        vertical, horizontal = "center", "center"

    style: dict[str, Any] = {"position": "absolute"}
    if vertical == "top":
        style["top"] = near_y
    elif vertical == "bottom":
        style["bottom"] = near_y
    elif vertical == "center":
        style.update(top=0, bottom=0, justifyContent="center")
    else:
        return {"position": "absolute", "top": LABEL_INSET, "left": LABEL_INSET}

    if horizontal == "left":
        style["left"] = near_x
    elif horizontal == "right":
        style["right"] = near_x
    elif horizontal == "center":
        style.update(left=0, right=0, alignItems="center")
    else:
        return {"position": "absolute", "top": LABEL_INSET, "left": LABEL_INSET}
    return style


def extract_background_image(style: Mapping[str, Any]) -> tuple[ImageSource | None, dict[str, Any]]:
    """Split a CSS ``url('...')`` background out of a resolved style.

    Returns the image source (or None) and a copy of the style with every
    background image key removed.
    """
    remaining = dict(style)
    raw = remaining.get("backgroundImage")
    if not raw:
        return None, remaining

    image: ImageSource | None = None
    match = BACKGROUND_URL_PATTERN.search(str(raw))
    if match:
        resize_mode = RESIZE_MODES.get(str(remaining.get("backgroundSize")), "cover")
        image = ImageSource(uri=match.group(1), resize_mode=resize_mode)
    else:
        logger.warning("Ignoring unparseable backgroundImage value: %s", raw)

    for key in BACKGROUND_KEYS:
        remaining.pop(key, None)
    return image, remaining


def lookup_path(path: str, context: Any) -> Any:
    current: Any = context
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
            continue
        return None
    return current


class PanelTreeInterpreter:
    def __init__(
        self,
        config: DashboardConfig,
        on_navigate: Callable[[str], Any] | None = None,
        tokens: Mapping[str, Any] | None = None,
    ) -> None:
        self.config = config
        self._on_navigate = on_navigate
        self._tokens = tokens

    def render_page(self, page: Page) -> RenderNode:
        return RenderNode(
            kind="page",
            id=page.id,
            style={"flex": 1, "width": FULL_SIZE, "height": FULL_SIZE},
            children=[self.render_layout(page.layout, page.panels)],
        )

    def render_layout(
        self,
        layout: LayoutConfig,
        panels: list[Panel],
        parent_style: Mapping[str, Any] | None = None,
    ) -> RenderNode:
        style = build_layout_style(layout)
        if parent_style:
            style.update(parent_style)
        return RenderNode(kind="layout", style=style, children=[self.render_panel(panel) for panel in panels])

    def render_panel(self, panel: Panel) -> RenderNode:
        image, style = extract_background_image(resolve_style(panel.style, self._tokens))
        if panel.flex:
            style = {"flex": panel.flex, **style} if image else {**style, "flex": panel.flex}

        children: list[RenderNode] = []
        if panel.label is not None:
            children.append(self.render_label(panel.label))
        content = self.render_content(panel)
        if content is not None:
            children.append(content)

        return RenderNode(
            kind="panel",
            id=panel.id,
            panel_type=panel.type,
            style=style,
            children=children,
            image=image,
            on_press=self._press_handler(panel),
        )

    def render_label(self, label: LabelConfig) -> RenderNode:
        offset = label.offset.model_dump(exclude_none=True) if label.offset else None
        text_style = {**_LABEL_TEXT_STYLE, **resolve_style(label.style, self._tokens)}
        return RenderNode(
            kind="label",
            style={"zIndex": LABEL_Z_INDEX, **label_position_style(label.position, offset)},
            children=[RenderNode(kind="text", style=text_style, content={"text": label.text})],
        )

    def render_content(self, panel: Panel) -> RenderNode | None:
        if panel.type == "container":
            if not panel.children:
                return None
            layout = panel.layout or LayoutConfig(type="flex", direction="column")
            return self.render_layout(layout, panel.children, {"flex": 1})

        if panel.type == "text":
            text = panel.text
            if text is None and panel.source and panel.path:
                value = self.lookup(panel.source, panel.path)
                text = "" if value is None else str(value)
            style = {**_TEXT_STYLE, **resolve_style(panel.style, self._tokens)}
            return RenderNode(kind="text", style=style, content={"text": text or "", "markdown": bool(panel.markdown)})

        if panel.type == "metric":
            value = self.lookup(panel.value.source, panel.value.path) if panel.value else None
            unit = panel.unit or ""
            display = MISSING_VALUE if value is None else f"{value}{unit}"
            style = {**_METRIC_STYLE, **resolve_style(panel.value.style if panel.value else None, self._tokens)}
            return RenderNode(
                kind="metric",
                style=style,
                content={"value": value, "unit": unit, "display": display, "icon": panel.icon},
            )

        if panel.type == "chart":
            return self._placeholder(panel.chart_type or "Chart", "Chart visualization")
        if panel.type == "table":
            return self._placeholder("Data Table", f"{len(panel.columns or [])} columns")
        if panel.type == "canvas":
            return self._placeholder("Canvas", f"{panel.canvas_type or 'r3f'} renderer")

        logger.warning("Unsupported panel type %s for panel %s", panel.type, panel.id)
        return self._placeholder(f"Unsupported panel type: {panel.type}")

    def lookup(self, source_name: str, path: str) -> Any:
        source = self.config.data_sources.get(source_name)
        if not isinstance(source, LocalSource):
            return None
        return lookup_path(path, source.data)

    def _placeholder(self, title: str, subtitle: str | None = None) -> RenderNode:
        content: dict[str, Any] = {"title": title}
        if subtitle is not None:
            content["subtitle"] = subtitle
        return RenderNode(kind="placeholder", style=dict(_PLACEHOLDER_STYLE), content=content)

    def _press_handler(self, panel: Panel) -> Callable[[], None] | None:
        click = panel.find_event("onClick")
        if click is None:
            return None

        def handle_press() -> None:
            for action in click.actions:
                if action.type == "navigateTo" and action.target and self._on_navigate is not None:
                    self._on_navigate(action.target)

        return handle_press
