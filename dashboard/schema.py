"""
Dashboard document schema.

Pydantic models for the declarative dashboard document (pages, recursive
panel tree, navigation, data sources, events) and the ``validate`` entry
point that turns any candidate object into a ``ValidationResult``.

Wire keys are camelCase (``initialPage``, ``dataSources``); attributes are
snake_case. Style and canvas payloads are open mappings, every other object
ignores unknown keys, and enum-typed fields reject unknown values.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, Strict, StrictBool, StrictStr, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from dashboard.errors import SchemaValidationError

# -----------------------------------------------------------------------------
# Literal Types
# -----------------------------------------------------------------------------

Number = Annotated[float, Strict()]
NonNegative = Annotated[float, Strict(), Field(ge=0)]
NumberOrText = Union[Number, StrictStr]
Percentage = Annotated[str, Field(pattern=r"^\d+(\.\d+)?%$")]
Dimension = Union[Number, Literal["auto"], Percentage]

EasingType = Literal[
    "linear",
    "easeIn",
    "easeOut",
    "easeInOut",
    "easeInQuad",
    "easeOutQuad",
    "easeInOutQuad",
    "easeInCubic",
    "easeOutCubic",
    "easeInOutCubic",
]

LayoutType = Literal["flex", "grid", "absolute"]

Justify = Literal["flex-start", "flex-end", "center", "space-between", "space-around", "space-evenly"]

Align = Literal["flex-start", "flex-end", "center", "stretch", "baseline"]

TransitionType = Literal["fade", "slide", "scale", "rotate", "none"]

Direction = Literal["left", "right", "up", "down"]

PanelType = Literal["container", "metric", "chart", "table", "canvas", "text", "button", "input", "list", "json"]

ChartType = Literal["line", "bar", "area", "pie", "scatter", "gauge", "candlestick"]

LabelPosition = Literal[
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
]

Severity = Literal["info", "success", "warning", "error"]

DocumentActionType = Literal[
    "navigateTo",
    "navigateNext",
    "navigatePrevious",
    "navigateBack",
    "updateStyle",
    "toggleStyle",
    "updateValue",
    "subscribe",
    "unsubscribe",
    "refresh",
    "notification",
    "setFullscreen",
    "toggleFullscreen",
    "exitFullscreen",
    "custom",
]

ComponentEventType = Literal["onClick", "onDoubleClick", "onLongPress", "onValueChange", "onDataUpdate", "onError"]

PageEventType = Literal["onLoad", "onUnload", "onFocus", "onBlur"]

GlobalEventType = Literal["onWebSocketMessage", "onApiResponse", "onKeyPress", "onSchedule"]

NavigationEventType = Literal["onSwipeLeft", "onSwipeRight", "onSwipeUp", "onSwipeDown", "onSchedule", "onIdle"]


def _require_absolute_url(value: str) -> str:
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        raise ValueError("Invalid url")
    return value


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class _OpenModel(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")


# -----------------------------------------------------------------------------
# Global configuration
# -----------------------------------------------------------------------------


class WebSocketSettings(_Model):
    url: StrictStr
    reconnect: StrictBool | None = None
    reconnect_interval: Annotated[float, Strict(), Field(ge=1000)] | None = None
    max_reconnect_attempts: NonNegative | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _require_absolute_url(value)


class GlobalTransitions(_Model):
    duration: NonNegative | None = None
    easing: EasingType | None = None


class GlobalConfig(_Model):
    websocket: WebSocketSettings | None = None
    theme: Literal["light", "dark"] | None = None
    transitions: GlobalTransitions | None = None


# -----------------------------------------------------------------------------
# Layout, transitions, style
# -----------------------------------------------------------------------------


class PaddingConfig(_Model):
    top: Number | None = None
    right: Number | None = None
    bottom: Number | None = None
    left: Number | None = None
    horizontal: Number | None = None
    vertical: Number | None = None


class LayoutConfig(_Model):
    type: LayoutType
    direction: Literal["row", "column"] | None = None
    gap: Number | None = None
    padding: Union[Number, PaddingConfig] | None = None
    height: Dimension | None = None
    width: Dimension | None = None
    wrap: StrictBool | None = None
    justify: Justify | None = None
    align: Align | None = None
    columns: Number | None = None
    rows: Number | None = None
    column_template: StrictStr | None = None
    row_template: StrictStr | None = None
    animated: StrictBool | None = None


class TransitionConfig(_Model):
    type: TransitionType
    direction: Direction | None = None
    duration: NonNegative | None = None
    easing: EasingType | None = None
    delay: NonNegative | None = None


class PageTransitions(_Model):
    enter: TransitionConfig | None = None
    exit: TransitionConfig | None = None


class StyleConfig(_OpenModel):
    bg: StrictStr | None = None
    background_color: StrictStr | None = None
    color: StrictStr | None = None
    border_color: StrictStr | None = None
    width: NumberOrText | None = None
    height: NumberOrText | None = None
    min_width: NumberOrText | None = None
    min_height: NumberOrText | None = None
    max_width: NumberOrText | None = None
    max_height: NumberOrText | None = None
    padding: NumberOrText | None = None
    padding_top: NumberOrText | None = None
    padding_right: NumberOrText | None = None
    padding_bottom: NumberOrText | None = None
    padding_left: NumberOrText | None = None
    padding_horizontal: NumberOrText | None = None
    padding_vertical: NumberOrText | None = None
    margin: NumberOrText | None = None
    margin_top: NumberOrText | None = None
    margin_right: NumberOrText | None = None
    margin_bottom: NumberOrText | None = None
    margin_left: NumberOrText | None = None
    border_width: Number | None = None
    border_radius: NumberOrText | None = None
    font_size: NumberOrText | None = None
    font_weight: Literal["normal", "bold", "100", "200", "300", "400", "500", "600", "700", "800", "900"] | None = None
    line_height: Number | None = None
    text_align: Literal["left", "center", "right", "justify"] | None = None
    opacity: Annotated[float, Strict(), Field(ge=0, le=1)] | None = None
    flex: Number | None = None
    flex_direction: Literal["row", "column", "row-reverse", "column-reverse"] | None = None
    justify_content: Justify | None = None
    align_items: Align | None = None
    position: Literal["relative", "absolute"] | None = None
    top: Number | None = None
    right: Number | None = None
    bottom: Number | None = None
    left: Number | None = None
    z_index: Number | None = None
    overflow: Literal["visible", "hidden", "scroll"] | None = None


class LabelOffset(_Model):
    x: Number | None = None
    y: Number | None = None


class LabelConfig(_Model):
    text: StrictStr
    position: LabelPosition
    style: StyleConfig | None = None
    offset: LabelOffset | None = None


# -----------------------------------------------------------------------------
# Panel payloads
# -----------------------------------------------------------------------------


class ValueConfig(_Model):
    source: StrictStr
    path: StrictStr
    format: StrictStr | None = None
    style: StyleConfig | None = None
    update_interval: Number | None = None


class TrendConfig(_Model):
    source: StrictStr
    path: StrictStr
    period: Number | None = None
    show_arrow: StrictBool | None = None
    show_percentage: StrictBool | None = None


class DataConfig(_Model):
    source: StrictStr
    path: StrictStr
    max_points: Number | None = None
    update_interval: Number | None = None


class GaugeZone(_Model):
    from_: Number = Field(alias="from")
    to: Number
    color: StrictStr


class ChartConfig(_Model):
    x_key: StrictStr | None = None
    y_key: StrictStr | None = None
    color: Union[StrictStr, list[StrictStr]] | None = None
    stroke_width: Number | None = None
    show_grid: StrictBool | None = None
    show_legend: StrictBool | None = None
    animate: StrictBool | None = None
    min: Number | None = None
    max: Number | None = None
    unit: StrictStr | None = None
    zones: list[GaugeZone] | None = None


class ColumnConfig(_Model):
    key: StrictStr
    label: StrictStr
    width: Number | None = None
    flex: Number | None = None
    align: Literal["left", "center", "right"] | None = None
    format: StrictStr | None = None
    sortable: StrictBool | None = None


class CameraConfig(_Model):
    position: tuple[Number, Number, Number] | None = None
    fov: Number | None = None
    near: Number | None = None
    far: Number | None = None


class ControlsConfig(_Model):
    enabled: StrictBool | None = None
    auto_rotate: StrictBool | None = None
    auto_rotate_speed: Number | None = None


class CanvasConfig(_OpenModel):
    scene: StrictStr | None = None
    background_color: StrictStr | None = None
    camera: CameraConfig | None = None
    controls: ControlsConfig | None = None


# -----------------------------------------------------------------------------
# Events & actions
# -----------------------------------------------------------------------------


class Action(_Model):
    type: DocumentActionType
    target: StrictStr | None = None
    style: StyleConfig | None = None
    duration: Number | None = None
    transition: TransitionConfig | None = None
    channel: StrictStr | None = None
    value: Any = None
    path: StrictStr | None = None
    message: StrictStr | None = None
    severity: Severity | None = None
    position: Literal["top", "bottom", "center"] | None = None
    handler: StrictStr | None = None
    params: dict[str, Any] | None = None


class ComponentEvent(_Model):
    type: ComponentEventType
    condition: StrictStr | None = None
    actions: list[Action]


class PageEvent(_Model):
    type: PageEventType
    condition: StrictStr | None = None
    actions: list[Action]


class GlobalEvent(_Model):
    type: GlobalEventType
    key: StrictStr | None = None
    channel: StrictStr | None = None
    path: StrictStr | None = None
    condition: StrictStr | None = None
    actions: list[Action]


# -----------------------------------------------------------------------------
# Panel (recursive) & page
# -----------------------------------------------------------------------------


class Panel(_Model):
    id: StrictStr
    type: PanelType
    layout: LayoutConfig | None = None
    style: StyleConfig | None = None
    flex: Number | None = None
    label: LabelConfig | None = None
    events: list[ComponentEvent] | None = None
    children: list[Panel] | None = None
    # metric
    value: ValueConfig | None = None
    unit: StrictStr | None = None
    icon: StrictStr | None = None
    trend: TrendConfig | None = None
    # chart
    chart_type: ChartType | None = None
    data: DataConfig | None = None
    chart_config: ChartConfig | None = None
    # table
    columns: list[ColumnConfig] | None = None
    max_rows: Number | None = None
    scrollable: StrictBool | None = None
    sortable: StrictBool | None = None
    filterable: StrictBool | None = None
    # canvas
    canvas_type: Literal["r3f", "webgl", "2d"] | None = None
    canvas_config: CanvasConfig | None = None
    # text
    text: StrictStr | None = None
    source: StrictStr | None = None
    path: StrictStr | None = None
    markdown: StrictBool | None = None

    def find_event(self, event_type: str) -> ComponentEvent | None:
        for event in self.events or []:
            if event.type == event_type:
                return event
        return None


class Page(_Model):
    id: StrictStr
    name: StrictStr
    layout: LayoutConfig
    transitions: PageTransitions | None = None
    panels: list[Panel]
    events: list[PageEvent] | None = None


# -----------------------------------------------------------------------------
# Navigation & data sources
# -----------------------------------------------------------------------------


class ScheduleConfig(_Model):
    interval: Number | None = None
    cron: StrictStr | None = None
    rotate: StrictBool | None = None


class NavigationEvent(_Model):
    type: NavigationEventType
    schedule: ScheduleConfig | None = None
    actions: list[Action]


class NavigationTransitions(_Model):
    default: TransitionConfig | None = None
    page_specific: dict[str, TransitionConfig] | None = None


class NavigationConfig(_Model):
    initial_page: StrictStr
    transitions: NavigationTransitions | None = None
    events: list[NavigationEvent] | None = None

    def find_event(self, event_type: str) -> NavigationEvent | None:
        for event in self.events or []:
            if event.type == event_type:
                return event
        return None


class WebSocketSource(_Model):
    type: Literal["websocket"]
    url: StrictStr
    reconnect: StrictBool | None = None
    reconnect_interval: Number | None = None
    subscriptions: list[StrictStr] | None = None
    transform: StrictStr | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _require_absolute_url(value)


class HttpSource(_Model):
    type: Literal["http"]
    url: StrictStr
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH"] | None = None
    headers: dict[str, StrictStr] | None = None
    body: Any = None
    poll_interval: Number | None = None
    transform: StrictStr | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _require_absolute_url(value)


class LocalSource(_Model):
    type: Literal["local"]
    data: Any = None
    refresh_interval: Number | None = None


DataSource = Annotated[Union[WebSocketSource, HttpSource, LocalSource], Field(discriminator="type")]


# -----------------------------------------------------------------------------
# Root documents
# -----------------------------------------------------------------------------

VERSION_PATTERN = r"^\d+\.\d+\.\d+$"


class DashboardConfig(_Model):
    version: Annotated[str, Field(pattern=VERSION_PATTERN)]
    config: GlobalConfig
    pages: Annotated[list[Page], Field(min_length=1)]
    navigation: NavigationConfig
    data_sources: dict[str, DataSource]
    global_events: list[GlobalEvent] | None = None

    def page_ids(self) -> list[str]:
        return [page.id for page in self.pages]

    def find_page(self, page_id: str) -> Page | None:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None


class PartialDashboardConfig(_Model):
    version: Annotated[str, Field(pattern=VERSION_PATTERN)] | None = None
    config: GlobalConfig | None = None
    pages: Annotated[list[Page], Field(min_length=1)] | None = None
    navigation: NavigationConfig | None = None
    data_sources: dict[str, DataSource] | None = None
    global_events: list[GlobalEvent] | None = None


Panel.model_rebuild()


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str
    code: str


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    data: Any = None
    errors: list[ValidationIssue] = field(default_factory=list)


def validate(candidate: Any) -> ValidationResult:
    """Validate a full dashboard document. Never raises."""
    return _validate_with(DashboardConfig, candidate, check_references=True)


def validate_partial(candidate: Any) -> ValidationResult:
    """Validate a partial document (every top-level key optional)."""
    return _validate_with(PartialDashboardConfig, candidate, check_references=False)


def require_valid(candidate: Any) -> DashboardConfig:
    result = validate(candidate)
    if not result.valid:
        raise SchemaValidationError(result.errors)
    return result.data


def dump_config(config: BaseModel) -> dict[str, Any]:
    return config.model_dump(by_alias=True, exclude_none=True)


def _validate_with(model: type[BaseModel], candidate: Any, check_references: bool) -> ValidationResult:
    if isinstance(candidate, BaseModel):
        candidate = dump_config(candidate)

    try:
        data = model.model_validate(candidate)
    except ValidationError as exc:
        return ValidationResult(valid=False, data=None, errors=_issues_from_error(exc, candidate))

    if check_references:
        issues = _reference_issues(data)
        if issues:
            return ValidationResult(valid=False, data=None, errors=issues)
    return ValidationResult(valid=True, data=data, errors=[])


def _reference_issues(config: DashboardConfig) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: set[str] = set()
    for index, page in enumerate(config.pages):
        if page.id in seen:
            issues.append(ValidationIssue(f"pages.{index}.id", f"Duplicate page id: {page.id}", "duplicate_id"))
        seen.add(page.id)

    if config.navigation.initial_page not in seen:
        issues.append(
            ValidationIssue(
                "navigation.initialPage",
                f"initialPage does not match any page id: {config.navigation.initial_page}",
                "invalid_reference",
            )
        )
    return issues


def _issues_from_error(exc: ValidationError, candidate: Any) -> list[ValidationIssue]:
    # Union alternatives report one error per branch; they share a union site
    # and collapse into one issue when more than one branch failed.
    ordered: list[ValidationIssue | str] = []
    branches: dict[str, list[tuple[str, ValidationIssue]]] = {}

    for error in exc.errors(include_url=False):
        path, union_site, branch = _normalize_loc(error["loc"], error["type"], candidate)
        issue = ValidationIssue(path=path, message=error["msg"], code=error["type"])
        if union_site is None:
            ordered.append(issue)
            continue
        if union_site not in branches:
            branches[union_site] = []
            ordered.append(union_site)
        branches[union_site].append((branch, issue))

    issues: list[ValidationIssue] = []
    for item in ordered:
        if isinstance(item, ValidationIssue):
            issues.append(item)
            continue
        grouped = branches[item]
        if len({branch for branch, _ in grouped}) == 1:
            issues.extend(issue for _, issue in grouped)
            continue
        messages = dict.fromkeys(issue.message for _, issue in grouped)
        issues.append(ValidationIssue(path=item, message="; ".join(messages), code="invalid_union"))
    return issues


def _normalize_loc(loc: tuple[Any, ...], error_type: str, candidate: Any) -> tuple[str, str | None, str]:
    """Map a pydantic error location onto the candidate's own keys.

    Location parts that name a union branch rather than a key/index of the
    input are dropped; the first one marks the union site.
    """
    parts: list[str] = []
    node: Any = candidate
    union_site: str | None = None
    branch = ""

    for index, part in enumerate(loc):
        is_last = index == len(loc) - 1
        if isinstance(node, Mapping) and part in node:
            node = node[part]
        elif isinstance(node, (list, tuple)) and isinstance(part, int) and 0 <= part < len(node):
            node = node[part]
        elif is_last and error_type == "missing":
            node = None
        else:
            if union_site is None:
                union_site = ".".join(parts)
                branch = str(part)
            continue
        parts.append(str(part))

    return ".".join(parts), union_site, branch
