from __future__ import annotations

import asyncio
import gc
import logging
from urllib.parse import parse_qs, urlsplit

from websockets.exceptions import ConnectionClosedError

from conftest import FakeConnector, settle
from dashboard.channel import ChannelClient, backoff_delay, with_token
from dashboard.errors import AuthenticationError, ReconnectExhausted

URL = "ws://relay.local:3001/ws"


class Recorder:
    def __init__(self) -> None:
        self.events: list[dict] = []
        self.errors: list[Exception] = []
        self.connects = 0
        self.disconnects = 0

    def client(self, connector, scheduler, **kwargs) -> ChannelClient:
        return ChannelClient(
            url=URL,
            token="secret",
            on_event=self.events.append,
            on_connect=self._on_connect,
            on_disconnect=self._on_disconnect,
            on_error=self.errors.append,
            connector=connector,
            scheduler=scheduler,
            **kwargs,
        )

    def _on_connect(self) -> None:
        self.connects += 1

    def _on_disconnect(self) -> None:
        self.disconnects += 1


def test_backoff_sequence_is_capped():
    assert [backoff_delay(3000, attempt) for attempt in range(1, 8)] == [
        3000,
        6000,
        12000,
        24000,
        48000,
        60000,
        60000,
    ]


def test_with_token_appends_query_parameter():
    assert with_token("ws://h/ws", "abc") == "ws://h/ws?token=abc"
    assert parse_qs(urlsplit(with_token("ws://h/ws?x=1&token=old", "new")).query) == {"x": ["1"], "token": ["new"]}
    assert with_token("ws://h/ws", None) == "ws://h/ws"


def test_connect_opens_channel_and_delivers_events_in_order(scheduler):
    async def scenario():
        recorder = Recorder()
        connector = FakeConnector()
        client = recorder.client(connector, scheduler)

        client.connect()
        assert client.state == "connecting"
        assert client.connect() is None
        await settle()

        assert client.state == "connected"
        assert recorder.connects == 1
        assert connector.urls == [f"{URL}?token=secret"]
        assert client.heartbeat.peers == [client]

        ws = connector.last
        ws.feed({"type": "connection", "message": "hello"})
        ws.feed({"type": "event", "event": {"id": "1", "actions": []}})
        ws.feed("not json")
        ws.feed({"type": "mystery"})
        ws.feed({"type": "event", "event": {"id": "2", "actions": []}})
        await settle()

        assert [event["id"] for event in recorder.events] == ["1", "2"]
        assert client.connected
        await client.dispose()

    asyncio.run(scenario())


def test_ping_is_answered_and_pong_marks_alive(scheduler):
    async def scenario():
        connector = FakeConnector()
        client = Recorder().client(connector, scheduler)
        client.connect()
        await settle()

        client.is_alive = False
        connector.last.feed({"type": "ping"})
        connector.last.feed({"type": "pong"})
        await settle()

        assert connector.last.sent_types() == ["pong"]
        assert client.is_alive is True
        await client.dispose()

    asyncio.run(scenario())


def test_send_only_while_connected(scheduler):
    async def scenario():
        connector = FakeConnector()
        client = Recorder().client(connector, scheduler)

        assert await client.send({"type": "hello"}) is False

        client.connect()
        await settle()
        assert await client.send({"type": "hello"}) is True
        assert await client.send('{"raw": true}') is True
        assert connector.last.sent == ['{"type": "hello"}', '{"raw": true}']
        await client.dispose()

    asyncio.run(scenario())


def test_unexpected_close_schedules_backoff_reconnect(scheduler):
    async def scenario():
        recorder = Recorder()
        connector = FakeConnector()
        client = recorder.client(connector, scheduler)
        client.connect()
        await settle()

        connector.last.server_close(1006)
        await settle()

        assert client.state == "disconnected"
        assert recorder.disconnects == 1
        assert client.reconnect_attempts == 1
        assert client.reconnect_pending

        scheduler.advance(2999)
        await settle()
        assert len(connector.urls) == 1

        scheduler.advance(1)
        await settle()
        assert len(connector.urls) == 2
        assert client.state == "connected"
        assert client.reconnect_attempts == 0
        await client.dispose()

    asyncio.run(scenario())


def test_gives_up_after_max_attempts(scheduler):
    async def scenario():
        recorder = Recorder()
        connector = FakeConnector(always_fail=True)
        client = recorder.client(connector, scheduler, max_reconnect_attempts=3)

        client.connect()
        await settle()
        for _ in range(5):
            scheduler.advance(60000)
            await settle()

        assert len(connector.urls) == 4
        assert scheduler.delays == [3000, 6000, 12000]
        assert not client.reconnect_pending
        assert isinstance(recorder.errors[-1], ReconnectExhausted)
        assert recorder.errors[-1].attempts == 3
        assert sum(isinstance(error, ConnectionRefusedError) for error in recorder.errors) == 4
        await client.dispose()

    asyncio.run(scenario())


def test_manual_connect_after_exhaustion_starts_a_fresh_budget(scheduler):
    async def scenario():
        connector = FakeConnector(failures=2)
        client = Recorder().client(connector, scheduler, max_reconnect_attempts=1)

        client.connect()
        await settle()
        scheduler.advance(3000)
        await settle()
        assert client.reconnect_attempts == 1
        assert not client.reconnect_pending

        client.connect()
        await settle()
        assert client.state == "connected"
        assert client.reconnect_attempts == 0
        await client.dispose()

    asyncio.run(scenario())


def test_auth_rejection_is_terminal(scheduler):
    async def scenario():
        recorder = Recorder()
        connector = FakeConnector()
        client = recorder.client(connector, scheduler)
        client.connect()
        await settle()

        connector.last.server_close(4401, "Unauthorized")
        await settle()
        scheduler.advance(120000)
        await settle()

        assert client.reconnect_attempts == 0
        assert not client.reconnect_pending
        assert len(connector.urls) == 1
        [error] = recorder.errors
        assert isinstance(error, AuthenticationError)
        assert error.code == 4401
        await client.dispose()

    asyncio.run(scenario())


def test_disconnect_is_intentional(scheduler):
    async def scenario():
        recorder = Recorder()
        connector = FakeConnector()
        client = recorder.client(connector, scheduler)
        client.connect()
        await settle()

        await client.disconnect()
        scheduler.advance(60000)
        await settle()

        assert connector.last.close_code == 1000
        assert client.state == "disconnected"
        assert recorder.disconnects == 1
        assert len(connector.urls) == 1
        await client.dispose()

    asyncio.run(scenario())


def test_disconnect_cancels_pending_reconnect(scheduler):
    async def scenario():
        connector = FakeConnector(always_fail=True)
        client = Recorder().client(connector, scheduler)
        client.connect()
        await settle()
        assert client.reconnect_pending

        await client.disconnect()
        scheduler.advance(60000)
        await settle()

        assert not client.reconnect_pending
        assert client.reconnect_attempts == 0
        assert len(connector.urls) == 1

    asyncio.run(scenario())


def test_missed_heartbeat_closes_and_reconnects(scheduler):
    async def scenario():
        connector = FakeConnector()
        client = Recorder().client(connector, scheduler, heartbeat_interval=1000)
        client.connect()
        await settle()
        first = connector.last

        scheduler.advance(1000)
        await settle()
        assert first.sent_types() == ["ping"]

        first.feed({"type": "pong"})
        await settle()
        scheduler.advance(1000)
        await settle()
        assert first.sent_types() == ["ping", "ping"]
        assert not first.closed

        scheduler.advance(1000)
        await settle()
        assert first.close_code == 4000
        assert client.reconnect_attempts == 1

        scheduler.advance(3000)
        await settle()
        assert len(connector.connections) == 2
        assert client.state == "connected"
        await client.dispose()
        assert not client.heartbeat.running

    asyncio.run(scenario())


def test_failed_heartbeat_send_is_logged(scheduler, caplog):
    async def scenario():
        unhandled = []
        asyncio.get_running_loop().set_exception_handler(lambda loop, context: unhandled.append(context["message"]))
        connector = FakeConnector()
        client = Recorder().client(connector, scheduler, heartbeat_interval=1000)
        client.connect()
        await settle()

        async def broken_send(message):
            raise ConnectionClosedError(None, None)

        connector.last.send = broken_send
        with caplog.at_level(logging.ERROR, logger="dashboard.scheduler"):
            scheduler.advance(1000)
            await settle()
        gc.collect()
        await settle()

        assert "Background task failed" in caplog.text
        assert unhandled == []
        await client.dispose()

    asyncio.run(scenario())
