from __future__ import annotations

import logging

from conftest import minimal_document
from dashboard.layout import (
    ImageSource,
    PanelTreeInterpreter,
    build_layout_style,
    extract_background_image,
    label_position_style,
)
from dashboard.schema import Panel, require_valid


def _interpreter(document, on_navigate=None):
    return PanelTreeInterpreter(require_valid(document), on_navigate=on_navigate)


def test_flex_layout_defaults_to_column():
    assert build_layout_style({"type": "flex"}) == {"display": "flex", "flexDirection": "column"}


def test_flex_layout_maps_alignment_and_wrap():
    style = build_layout_style(
        {"type": "flex", "direction": "row", "justify": "space-between", "align": "center", "wrap": False}
    )

    assert style == {
        "display": "flex",
        "flexDirection": "row",
        "justifyContent": "space-between",
        "alignItems": "center",
        "flexWrap": "nowrap",
    }


def test_grid_layout_is_wrapped_row():
    style = build_layout_style({"type": "grid", "columns": 3, "gap": 4})

    assert style == {"display": "flex", "flexDirection": "row", "flexWrap": "wrap", "gap": 4}


def test_absolute_layout_and_dimensions():
    style = build_layout_style({"type": "absolute", "width": "100%", "height": 200})

    assert style == {"position": "relative", "height": 200}
    assert build_layout_style({"type": "absolute", "width": "auto", "height": "50%"}) == {
        "position": "relative",
        "height": "50%",
        "width": "auto",
    }


def test_padding_scalar_and_per_edge():
    assert build_layout_style({"type": "flex", "padding": 12})["padding"] == 12

    style = build_layout_style({"type": "flex", "padding": {"horizontal": 12, "top": 4}})
    assert style["paddingHorizontal"] == 12
    assert style["paddingTop"] == 4
    assert "padding" not in style


def test_label_positions():
    assert label_position_style("top-left") == {"position": "absolute", "top": 8, "left": 8}
    assert label_position_style("bottom-right", {"x": 4, "y": 2}) == {
        "position": "absolute",
        "bottom": 10,
        "right": 12,
    }
    centered = label_position_style("center")
    assert centered["justifyContent"] == "center"
    assert centered["alignItems"] == "center"


def test_background_image_extracted_and_stripped():
    image, style = extract_background_image(
        {
            "backgroundImage": "url('/img/a.png')",
            "backgroundSize": "contain",
            "backgroundRepeat": "no-repeat",
            "backgroundPosition": "center",
            "borderRadius": 4,
        }
    )

    assert image == ImageSource(uri="/img/a.png", resize_mode="contain")
    assert style == {"borderRadius": 4}


def test_background_image_defaults_to_cover():
    image, _ = extract_background_image({"backgroundImage": 'url("https://cdn.example/bg.jpg")'})

    assert image == ImageSource(uri="https://cdn.example/bg.jpg", resize_mode="cover")


def test_render_overview_page(sample_document):
    interpreter = _interpreter(sample_document)
    config = interpreter.config

    tree = interpreter.render_page(config.find_page("overview"))

    assert tree.kind == "page"
    layout = tree.children[0]
    assert layout.style == {"display": "flex", "flexDirection": "column", "gap": 8, "padding": 12}
    assert [child.id for child in layout.children] == ["header", "metrics-row", "to-gallery"]

    header = tree.find("header")
    assert header.style == {"backgroundColor": "#121825", "color": "#E8F0FF", "fontSize": 24}
    assert header.children[0].content["text"] == "Station Overview"


def test_container_recurses_with_its_own_layout(sample_document):
    tree = _interpreter(sample_document).render_page(require_valid(sample_document).pages[0])

    row = tree.find("metrics-row")
    inner = row.children[0]
    assert inner.kind == "layout"
    assert inner.style["flexDirection"] == "row"
    assert inner.style["flex"] == 1
    assert [child.id for child in inner.children] == ["cpu", "memory"]


def test_metric_value_from_local_source(sample_document):
    interpreter = _interpreter(sample_document)
    cpu = interpreter.render_page(interpreter.config.pages[0]).find("cpu")

    label, metric = cpu.children
    assert label.kind == "label"
    assert label.style["zIndex"] == 10
    assert metric.kind == "metric"
    assert metric.content["display"] == "42%"


def test_metric_without_value_shows_placeholder_dash():
    panel = Panel.model_validate({"id": "m", "type": "metric", "value": {"source": "none", "path": "x"}})

    node = _interpreter(minimal_document()).render_panel(panel)

    assert node.children[0].content["display"] == "--"


def test_empty_container_renders_nothing():
    interpreter = _interpreter(minimal_document())

    assert interpreter.render_panel(Panel(id="empty", type="container")).children == []
    assert interpreter.render_panel(Panel(id="empty", type="container", children=[])).children == []


def test_background_panel_gets_image_source(sample_document):
    interpreter = _interpreter(sample_document)
    backdrop = interpreter.render_page(interpreter.config.find_page("gallery")).find("backdrop")

    assert backdrop.image == ImageSource(uri="/images/station.png", resize_mode="contain")
    assert "backgroundImage" not in backdrop.style
    assert "backgroundSize" not in backdrop.style


def test_click_forwards_navigate_targets(sample_document):
    targets = []
    interpreter = _interpreter(sample_document, on_navigate=targets.append)
    tree = interpreter.render_page(interpreter.config.pages[0])

    button = tree.find("to-gallery")
    assert button.pressable
    button.press()

    assert targets == ["gallery"]
    assert not tree.find("header").pressable


def test_unsupported_panel_type_logs_and_renders_placeholder(caplog):
    interpreter = _interpreter(minimal_document())

    with caplog.at_level(logging.WARNING, logger="dashboard.layout"):
        node = interpreter.render_panel(Panel(id="j", type="json"))

    assert node.children[0].kind == "placeholder"
    assert node.children[0].content["title"] == "Unsupported panel type: json"
    assert "json" in caplog.text


def test_chart_and_table_render_placeholders(sample_document):
    interpreter = _interpreter(sample_document)
    tree = interpreter.render_page(interpreter.config.find_page("trends"))

    chart = tree.find("load-chart").children[0]
    table = tree.find("events-table").children[0]
    assert chart.content["title"] == "line"
    assert table.content["subtitle"] == "2 columns"
