"""
Tests for the heartbeat monitor.

A peer that misses one probe survives; a peer that misses two consecutive
probes is evicted and its transport closed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from chat_gateway.components.connection.heartbeat import HeartbeatMonitor, handle_heartbeat
from chat_gateway.components.core.constants import WSCloseCode
from chat_gateway.core.connection.broadcaster import SendResult
from chat_shared.protocol import MSG_PING, MSG_PONG, encode_message, identity_message


class TestHeartbeatCycle:

    @pytest.mark.asyncio
    async def test_first_cycle_probes_without_evicting(self, manager, connect):
        ws_a, a = await connect()
        ws_b, b = await connect()

        evicted = await manager.run_heartbeat_cycle()

        assert evicted == 0
        assert ws_a.sent[-1] == MSG_PING
        assert ws_b.sent[-1] == MSG_PING
        assert a.alive is False and b.alive is False

    @pytest.mark.asyncio
    async def test_acknowledged_session_survives(self, manager, connect):
        _, session = await connect()

        for _ in range(3):
            await manager.run_heartbeat_cycle()
            assert await manager.handle_frame(session, MSG_PONG) is None

        assert session in manager.registry

    @pytest.mark.asyncio
    async def test_silent_session_evicted_on_second_cycle(self, manager, connect):
        ws_live, live = await connect()
        ws_silent, silent = await connect()

        await manager.run_heartbeat_cycle()
        await manager.handle_frame(live, MSG_PONG)
        evicted = await manager.run_heartbeat_cycle()

        assert evicted == 1
        assert silent not in manager.registry
        assert live in manager.registry
        assert ws_silent.close_code == WSCloseCode.GOING_AWAY
        assert manager.metrics.get_snapshot()["connections_evicted"] == 1

    @pytest.mark.asyncio
    async def test_evictions_in_one_cycle_publish_one_presence_update(self, manager, connect):
        ws_live, live = await connect()
        silent = [(await connect())[1] for _ in range(2)]
        for i, session in enumerate(silent):
            await manager.handle_frame(session, encode_message(identity_message(f"ghost{i}")))
        await manager.handle_frame(live, encode_message(identity_message("alice")))

        await manager.run_heartbeat_cycle()
        await manager.handle_frame(live, MSG_PONG)
        ws_live.clear()
        await manager.run_heartbeat_cycle()

        assert ws_live.presence_updates() == [["alice"]]

    @pytest.mark.asyncio
    async def test_probe_send_failure_evicts_in_same_cycle(self, manager, connect):
        ws, session = await connect()
        ws.fail_send = True

        evicted = await manager.run_heartbeat_cycle()

        assert evicted == 1
        assert session not in manager.registry

    @pytest.mark.asyncio
    async def test_session_removed_between_cycles_is_not_evicted_again(self, manager, connect):
        ws_other, _ = await connect()
        _, session = await connect()
        await manager.run_heartbeat_cycle()
        await manager.disconnect(session)
        ws_other.clear()

        evicted = await manager.run_heartbeat_cycle()

        assert evicted == 1
        assert manager.total_connections == 0
        assert ws_other.close_code == WSCloseCode.GOING_AWAY


class TestHeartbeatTask:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, manager):
        monitor = HeartbeatMonitor(
            registry=manager.registry,
            broadcaster=MagicMock(send_text_many=AsyncMock(return_value=SendResult())),
            remove_sessions=AsyncMock(return_value=0),
            metrics=manager.metrics,
            interval=0.01,
        )
        monitor.start()
        assert monitor.is_running

        await asyncio.sleep(0.05)
        await monitor.stop()

        assert not monitor.is_running
        assert monitor.cycles >= 1
        assert monitor.get_stats()["running"] is False

    @pytest.mark.asyncio
    async def test_manager_starts_and_stops_heartbeat(self, manager):
        manager.start_heartbeat()
        assert manager.heartbeat.is_running

        await manager.shutdown()

        assert not manager.heartbeat.is_running


class TestHandleHeartbeat:

    @pytest.mark.asyncio
    async def test_pong_marks_alive(self, connect):
        _, session = await connect()
        session.alive = False
        send_text = AsyncMock()

        assert await handle_heartbeat(session, MSG_PONG, send_text) is True
        assert session.alive is True
        send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_peer_ping_answered_with_pong(self, connect):
        _, session = await connect()
        send_text = AsyncMock()

        assert await handle_heartbeat(session, MSG_PING, send_text) is True
        send_text.assert_awaited_once_with(MSG_PONG)

    @pytest.mark.asyncio
    async def test_pong_reply_failure_is_swallowed(self, connect):
        _, session = await connect()
        send_text = AsyncMock(side_effect=RuntimeError("closed"))

        assert await handle_heartbeat(session, MSG_PING, send_text) is True

    @pytest.mark.asyncio
    async def test_other_frames_pass_through(self, connect):
        _, session = await connect()

        assert await handle_heartbeat(session, '{"type": "text"}', AsyncMock()) is False

    @pytest.mark.asyncio
    async def test_pong_reply_bounded_by_send_timeout(self, manager, connect):
        ws, session = await connect()
        ws.clear()
        ws.send_delay = 1.0

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await manager.handle_frame(session, MSG_PING)

        assert result is None
        assert loop.time() - started < 0.5
        assert ws.sent == []
        assert session in manager.registry

    @pytest.mark.asyncio
    async def test_pong_reply_sent_through_gateway(self, manager, connect):
        ws, session = await connect()
        ws.clear()

        await manager.handle_frame(session, MSG_PING)

        assert ws.sent == [MSG_PONG]
