from __future__ import annotations

import logging

from conftest import minimal_document
from dashboard.navigation import Navigator
from dashboard.schema import require_valid


def _navigator(document=None, **kwargs):
    return Navigator(require_valid(document or minimal_document()), **kwargs)


def test_starts_on_initial_page():
    navigator = _navigator(minimal_document(navigation={"initialPage": "b"}))

    assert navigator.current_page_id == "b"
    assert navigator.current_index == 1
    assert navigator.page_count == 3


def test_next_and_previous_wrap_around():
    navigator = _navigator()

    assert [navigator.next() for _ in range(3)] == ["b", "c", "a"]
    assert navigator.previous() == "c"


def test_next_then_previous_is_identity():
    navigator = _navigator()
    for start in ("a", "b", "c"):
        navigator.goto(start)
        navigator.next()
        assert navigator.previous() == start


def test_goto_unknown_page_is_a_noop(caplog):
    changes = []
    navigator = _navigator(on_change=lambda *args: changes.append(args))

    with caplog.at_level(logging.WARNING, logger="dashboard.navigation"):
        assert navigator.goto("nowhere") is False

    assert navigator.current_page_id == "a"
    assert changes == []
    assert "nowhere" in caplog.text


def test_on_change_receives_previous_page_and_transition(sample_document):
    changes = []
    navigator = _navigator(sample_document, on_change=lambda *args: changes.append(args))

    assert navigator.goto("trends") is True

    previous, page, transition = changes[0]
    assert previous.id == "overview"
    assert page.id == "trends"
    assert transition.type == "slide"
    assert transition.duration == 350


def test_goto_current_page_does_not_notify():
    changes = []
    navigator = _navigator(on_change=lambda *args: changes.append(args))

    assert navigator.goto("a") is True
    assert changes == []


def test_back_returns_through_history():
    navigator = _navigator()
    navigator.goto("c")
    navigator.goto("b")

    assert navigator.history == ["a", "c"]
    assert navigator.back() is True
    assert navigator.current_page_id == "c"
    assert navigator.back() is True
    assert navigator.current_page_id == "a"
    assert navigator.back() is False


def test_history_is_bounded():
    navigator = _navigator(history_limit=2)
    for page_id in ("b", "c", "a", "b"):
        navigator.goto(page_id)

    assert navigator.history == ["c", "a"]


def test_replace_config_keeps_current_page_when_present():
    changes = []
    navigator = _navigator(on_change=lambda *args: changes.append(args))
    navigator.goto("b")
    changes.clear()

    document = minimal_document(navigation={"initialPage": "c"})
    navigator.replace_config(require_valid(document))

    assert navigator.current_page_id == "b"
    assert changes == []


def test_replace_config_falls_back_to_initial_page():
    changes = []
    navigator = _navigator(on_change=lambda *args: changes.append(args))
    navigator.goto("b")

    document = minimal_document(navigation={"initialPage": "c"})
    document["pages"] = [page for page in document["pages"] if page["id"] != "b"]
    navigator.replace_config(require_valid(document))

    assert navigator.current_page_id == "c"
    assert changes[-1][1].id == "c"
    assert "b" not in navigator.history
