from __future__ import annotations

from dashboard.notifications import NotificationCenter
from dashboard.settings_store import DEFAULT_SETTINGS, SettingsStore, deep_merge


def test_deep_merge_keeps_sibling_keys():
    target = {"display": {"brightness": 50, "dim": False}, "theme": "dark"}

    deep_merge(target, {"display": {"brightness": 80}})

    assert target == {"display": {"brightness": 80, "dim": False}, "theme": "dark"}


def test_defaults_and_alias():
    store = SettingsStore({"autoTransition": False})

    assert store.auto_transition_enabled is False
    assert store.get("autoTransition") is False
    assert store.get("useDemoConfig") is DEFAULT_SETTINGS["useDemoConfig"]


def test_update_notifies_listeners_until_unsubscribed():
    store = SettingsStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.update({"kiosk": {"name": "lobby"}})
    unsubscribe()
    store.update({"kiosk": {"name": "hall"}})

    assert len(seen) == 1
    assert seen[0]["kiosk"] == {"name": "lobby"}
    assert store.get("kiosk") == {"name": "hall"}


def test_snapshot_is_a_copy():
    store = SettingsStore({"kiosk": {"name": "lobby"}})

    store.snapshot()["kiosk"]["name"] = "changed"

    assert store.get("kiosk") == {"name": "lobby"}


def test_toggle_auto_transition():
    store = SettingsStore()

    assert store.toggle_auto_transition() is False
    assert store.toggle_auto_transition() is True
    assert store.toggle_auto_transition(True) is True


def test_persistent_update_without_persister_still_applies(caplog):
    store = SettingsStore()

    store.update({"brightness": 10}, persistent=True)

    assert store.get("brightness") == 10
    assert "no settings store" in caplog.text


def test_notifications_auto_dismiss(scheduler):
    center = NotificationCenter(scheduler)

    first = center.show("A", "first")
    center.show("B", "second", duration=5000)
    sticky = center.show("C", "sticky", duration=0)

    scheduler.advance(3000)
    assert [n.title for n in center.active] == ["B", "C"]

    scheduler.advance(2000)
    assert center.active == [sticky]
    assert center.dismiss(first.id) is False


def test_manual_dismiss_cancels_timer(scheduler):
    center = NotificationCenter(scheduler)
    notification = center.show("A", "message", severity="warning")

    assert center.dismiss(notification.id) is True
    assert scheduler.pending == []
    assert notification.to_message()["severity"] == "warning"


def test_clear_removes_everything(scheduler):
    center = NotificationCenter(scheduler)
    center.show("A", "one")
    center.show("B", "two")

    center.clear()

    assert center.active == []
    assert scheduler.pending == []
