from __future__ import annotations

import json

import pytest

from tools import send_event, validate_dashboard, ws_realtime_subscriber


def test_validate_dashboard_accepts_embedded_document(capsys):
    assert validate_dashboard.main([]) == 0

    out = capsys.readouterr().out
    assert "[valid]" in out
    assert "overview" in out


def test_validate_dashboard_reports_issues_as_json(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"version": "1.0.0", "config": {}, "pages": []}), encoding="utf-8")

    assert validate_dashboard.main([str(path), "--json"]) == 1

    payload = json.loads(capsys.readouterr().out)
    assert payload["valid"] is False
    assert {error["path"] for error in payload["errors"]} == {"pages", "navigation", "dataSources"}


def test_validate_dashboard_unreadable_file(tmp_path, capsys):
    assert validate_dashboard.main([str(tmp_path / "missing.json")]) == 1
    assert "cannot read" in capsys.readouterr().err


def test_send_event_builds_actions_in_order():
    args = send_event.parse_args(
        [
            "--event-id",
            "evt-9",
            "--navigate",
            "trends",
            "--notify",
            "Heads up:Door open",
            "--severity",
            "warning",
            "--refresh",
            "all",
            "--set",
            "display.brightness=70",
            "--set",
            "kiosk.name=lobby",
            "--pause",
        ]
    )

    event = send_event.build_event(args)

    assert event["id"] == "evt-9"
    assert event["actions"] == [
        {"type": "navigate", "target": "trends"},
        {"type": "notify", "title": "Heads up", "message": "Door open", "severity": "warning"},
        {"type": "refresh", "target": "all"},
        {"type": "config.update", "path": "display.brightness", "value": 70},
        {"type": "config.update", "path": "kiosk.name", "value": "lobby"},
        {"type": "transition.pause"},
    ]


def test_send_event_rejects_non_list_actions():
    args = send_event.parse_args(["--actions", '{"type": "refresh"}'])

    with pytest.raises(ValueError):
        send_event.build_actions(args)


def test_send_event_without_actions_exits_early(capsys):
    assert send_event.main([]) == 2
    assert "no actions" in capsys.readouterr().err


def test_subscriber_formatting():
    assert ws_realtime_subscriber.build_ws_url("kiosk", 3001, use_wss=True) == "wss://kiosk:3001/ws"
    assert ws_realtime_subscriber.format_timestamp(None) == "-"
    assert ws_realtime_subscriber.format_timestamp("garbage") == "garbage"

    line = ws_realtime_subscriber.format_event(
        {"id": "evt-1", "actions": [{"type": "navigate"}, {"type": "notify"}]}
    )
    assert line == "[-] event=evt-1 type=- actions=navigate,notify"
