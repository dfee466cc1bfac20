"""
Chat Connection Manager.

Thin orchestrator that composes the gateway components:
- ConnectionRegistry: The live sessions
- ConnectionLifecycle: Accept/remove logic
- ConnectionBroadcaster: Sending and fan-out
- MessageRouter: Protocol rules for inbound frames
- HeartbeatMonitor: Probe/evict cycle
- ConnectionStats: Statistics aggregation

The manager is passed explicitly to endpoints and background tasks; the
registry is handed to each component rather than reached through globals.
"""

from __future__ import annotations

from functools import partial
from typing import Any, TYPE_CHECKING

from chat_shared.config.logging import get_logger
from chat_shared.config.settings import settings
from chat_gateway.components.core.constants import WSCloseCode
from chat_gateway.components.connection.heartbeat import HeartbeatMonitor, handle_heartbeat
from chat_gateway.components.connection.registry import ConnectionRegistry
from chat_gateway.components.messages.router import MessageRouter, RoutingResult
from chat_gateway.components.metrics.collector import MetricsCollector
from chat_gateway.core.connection import (
    ConnectionBroadcaster,
    ConnectionLifecycle,
    ConnectionStats,
)

if TYPE_CHECKING:
    from fastapi import WebSocket
    from chat_gateway.components.connection.session import Session

logger = get_logger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Manages chat sessions for one gateway process.

    Configuration from settings:
    - ws_heartbeat_interval: Seconds between heartbeat cycles (default: 30)
    - ws_send_timeout: Bound on a single send (default: 5)
    """

    def __init__(
        self,
        heartbeat_interval: float | None = None,
        send_timeout: float | None = None,
    ) -> None:
        """Initialize the connection manager with composed components."""
        self._registry = ConnectionRegistry()
        self._metrics = MetricsCollector()

        self._lifecycle = ConnectionLifecycle(
            registry=self._registry,
            metrics=self._metrics,
        )

        # Broadcaster reports failed sends back to lifecycle for removal
        self._broadcaster = ConnectionBroadcaster(
            registry=self._registry,
            metrics=self._metrics,
            on_dead=self._remove_dead,
            send_timeout=send_timeout if send_timeout is not None else settings.ws_send_timeout,
        )
        self._lifecycle.bind_broadcaster(self._broadcaster)

        self._router = MessageRouter(self._broadcaster, self._metrics)

        self._heartbeat = HeartbeatMonitor(
            registry=self._registry,
            broadcaster=self._broadcaster,
            remove_sessions=self._lifecycle.remove_sessions,
            metrics=self._metrics,
            interval=(
                heartbeat_interval
                if heartbeat_interval is not None
                else settings.ws_heartbeat_interval
            ),
        )

        self._stats = ConnectionStats(
            registry=self._registry,
            metrics=self._metrics,
            heartbeat_monitor=self._heartbeat,
        )

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def total_connections(self) -> int:
        """Total number of live sessions."""
        return self._registry.size

    # =========================================================================
    # Connection management (delegate to lifecycle)
    # =========================================================================

    async def connect(self, websocket: "WebSocket") -> "Session":
        """Accept a WebSocket and admit a session for it."""
        return await self._lifecycle.connect(websocket)

    async def disconnect(self, session: "Session", reason: str = "client_disconnect") -> bool:
        """Remove a session; no-op if it was already removed."""
        return await self._lifecycle.disconnect(session, reason=reason)

    async def _remove_dead(self, sessions: list["Session"]) -> int:
        """Remove sessions whose transport failed during a send."""
        return await self._lifecycle.remove_sessions(
            sessions, reason="send_failed", close_code=WSCloseCode.GOING_AWAY
        )

    # =========================================================================
    # Inbound frames
    # =========================================================================

    async def handle_frame(self, session: "Session", data: str) -> RoutingResult | None:
        """
        Handle one inbound frame.

        Keep-alive control frames are consumed here; everything else goes to
        the message router.

        Returns:
            The routing result, or None for a control frame.
        """
        if await handle_heartbeat(session, data, partial(self._broadcaster.send_raw, session)):
            return None
        return await self._router.handle(session, data)

    # =========================================================================
    # Sending (delegate to broadcaster)
    # =========================================================================

    async def send(self, session: "Session", payload: dict[str, Any]) -> bool:
        """Send a message to one session."""
        return await self._broadcaster.send(session, payload)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """Send a message to every open session."""
        return await self._broadcaster.broadcast(payload)

    async def publish_presence(self) -> int:
        """Push the presence snapshot to every open session."""
        return await self._broadcaster.publish_presence()

    # =========================================================================
    # Heartbeat (delegate to monitor)
    # =========================================================================

    def start_heartbeat(self) -> None:
        """Start the heartbeat monitor task. Call from the app lifespan."""
        self._heartbeat.start()

    async def run_heartbeat_cycle(self) -> int:
        """Run one heartbeat cycle immediately."""
        return await self._heartbeat.run_cycle()

    # =========================================================================
    # Statistics (delegate to stats)
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        return self._stats.get_stats()

    async def get_detailed_stats(self) -> dict[str, Any]:
        return await self._stats.get_detailed_stats()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> int:
        """Graceful shutdown - close all sessions."""
        self._lifecycle.set_shutdown(True)
        logger.info("Connection manager shutting down...")
        await self._heartbeat.stop()
        closed = await self._lifecycle.close_all()
        logger.info("Shutdown complete", closed=closed)
        return closed

    def is_shutting_down(self) -> bool:
        """Check if the manager is in shutdown mode."""
        return self._lifecycle.is_shutdown
