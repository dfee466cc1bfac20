"""
Tests for the client reconnection controller.

Tests verify:
- Unexpected loss schedules a reconnect and the identity is replayed
- Outbound text is never queued while disconnected
- Shutdown is idempotent, cancels a pending reconnect and honours the grace
  timeout
"""

import asyncio
import json

import pytest

from chat_client.console import render_event
from chat_client.controller import (
    NOTICE_NOT_CONNECTED,
    NOTICE_WAITING,
    ClientState,
    ReconnectionController,
)
from chat_client.retry import ReconnectPolicy
from conftest import FakeConnector, wait_until


def identity_frame(name: str) -> dict:
    return {"type": "identity", "identity": name}


@pytest.fixture
def notices():
    return []


@pytest.fixture
def events():
    return []


@pytest.fixture
def make_controller(notices, events):
    def _make(connector, delay: float = 0.01, grace: float = 0.2):
        return ReconnectionController(
            "ws://chat.test/ws/chat",
            on_event=events.append,
            on_notice=notices.append,
            policy=ReconnectPolicy(delay=delay),
            shutdown_grace=grace,
            connect=connector,
        )

    return _make


async def stop(controller: ReconnectionController, task: asyncio.Task):
    await controller.shutdown()
    await asyncio.wait_for(task, timeout=1.0)


class TestConnecting:

    @pytest.mark.asyncio
    async def test_register_while_open_sends_identity(self, make_controller, notices):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        assert await controller.register("  alice ") is True

        assert connector.connections[0].messages == [identity_frame("alice")]
        assert "Connected as alice" in notices
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_register_before_connection_waits(self, make_controller, notices):
        connector = FakeConnector()
        controller = make_controller(connector)

        assert await controller.register("alice") is False
        assert notices == [NOTICE_WAITING]

        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)
        await wait_until(lambda: connector.connections[0].sent)

        assert connector.connections[0].messages == [identity_frame("alice")]
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, make_controller):
        controller = make_controller(FakeConnector())

        with pytest.raises(ValueError):
            await controller.register("   ")
        assert controller.identity is None

    @pytest.mark.asyncio
    async def test_connection_failures_retried(self, make_controller, notices):
        connector = FakeConnector(failures=3)
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())

        await wait_until(lambda: controller.state is ClientState.OPEN)

        assert connector.calls == 4
        assert controller.connections == 1
        assert sum(n.startswith("Connection error") for n in notices) == 3
        await stop(controller, task)


class TestReconnect:

    @pytest.mark.asyncio
    async def test_identity_replayed_after_loss(self, make_controller, notices):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)
        await controller.register("alice")

        connector.connections[0].drop()
        await wait_until(lambda: len(connector.connections) == 2)
        await wait_until(lambda: connector.connections[1].sent)

        assert connector.connections[1].messages == [identity_frame("alice")]
        assert "Disconnected from server." in notices
        assert "Attempting to reconnect in 0.01 seconds..." in notices
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_one_reconnect_per_loss(self, make_controller):
        connector = FakeConnector()
        controller = make_controller(connector, delay=0.05)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        connector.connections[0].drop()
        await wait_until(lambda: controller.state is ClientState.OPEN and controller.connections == 2)
        await asyncio.sleep(0.1)

        assert connector.calls == 2
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_server_close_triggers_reconnect(self, make_controller):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        await connector.connections[0].close()

        await wait_until(lambda: controller.connections == 2)
        await stop(controller, task)


class TestSending:

    @pytest.mark.asyncio
    async def test_text_while_disconnected_is_dropped(self, make_controller, notices):
        connector = FakeConnector()
        controller = make_controller(connector)

        assert await controller.send_text("hello") is False
        assert notices == [NOTICE_NOT_CONNECTED]

        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)
        await asyncio.sleep(0.02)

        # Nothing was queued for the new connection
        assert connector.connections[0].sent == []
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_text_while_open_is_sent(self, make_controller):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        assert await controller.send_text(" hi ") is True

        assert connector.connections[0].messages == [{"type": "text", "body": "hi"}]
        await stop(controller, task)


class TestInbound:

    @pytest.mark.asyncio
    async def test_answers_keepalive_probe(self, make_controller):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        connector.connections[0].feed("ping")
        await wait_until(lambda: connector.connections[0].sent)

        assert connector.connections[0].sent == ["pong"]
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_events_and_invalid_frames(self, make_controller, events, notices):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)
        presence = {"type": "presence", "users": ["alice"]}

        connector.connections[0].feed(json.dumps(presence))
        connector.connections[0].feed("garbage")
        await wait_until(lambda: "Received invalid message: garbage" in notices)

        assert events == [presence]
        await stop(controller, task)

    @pytest.mark.asyncio
    async def test_unrenderable_event_reported_and_reconnect_still_happens(self, notices):
        connector = FakeConnector()
        controller = ReconnectionController(
            "ws://chat.test/ws/chat",
            on_event=render_event,
            on_notice=notices.append,
            policy=ReconnectPolicy(delay=0.01),
            shutdown_grace=0.2,
            connect=connector,
        )
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        connector.connections[0].feed('{"type": "presence", "users": 5}')
        connector.connections[0].feed("[" * 5000 + "]" * 5000)
        await wait_until(
            lambda: sum(n.startswith("Received invalid message") for n in notices) == 2
        )
        assert not task.done()

        connector.connections[0].drop()
        await wait_until(lambda: controller.connections == 2)

        assert connector.calls == 2
        await stop(controller, task)


class TestShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, make_controller):
        connector = FakeConnector()
        controller = make_controller(connector)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        assert await controller.shutdown() is True
        assert await controller.shutdown() is False

        await asyncio.wait_for(task, timeout=1.0)
        assert controller.state is ClientState.DISCONNECTED
        assert connector.connections[0].closed
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_reconnect(self, make_controller, notices):
        connector = FakeConnector(failures=1)
        controller = make_controller(connector, delay=30.0)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: any(n.startswith("Attempting to reconnect") for n in notices))

        await controller.shutdown()

        await asyncio.wait_for(task, timeout=1.0)
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_shutdown_returns_after_grace_when_close_hangs(self, make_controller):
        connector = FakeConnector(hang_on_close=True)
        controller = make_controller(connector, grace=0.05)
        task = asyncio.create_task(controller.run())
        await wait_until(lambda: controller.state is ClientState.OPEN)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await controller.shutdown()

        assert loop.time() - started < 0.5
        for pending in (task, controller._close_task):
            pending.cancel()
        await asyncio.gather(task, controller._close_task, return_exceptions=True)

    @pytest.mark.asyncio
    async def test_shutdown_before_run(self, make_controller):
        controller = make_controller(FakeConnector())

        assert await controller.shutdown() is True
        await asyncio.wait_for(controller.run(), timeout=1.0)
        assert controller.state is ClientState.DISCONNECTED
