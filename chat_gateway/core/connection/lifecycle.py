"""
Connection Lifecycle Management.

Handles WebSocket acceptance, session admission and session removal.
Every membership change ends with a presence update.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from chat_gateway.components.core.constants import WSCloseCode, WSConstants
from chat_shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from chat_gateway.components.connection.registry import ConnectionRegistry
    from chat_gateway.components.connection.session import Session
    from chat_gateway.components.metrics.collector import MetricsCollector
    from chat_gateway.core.connection.broadcaster import ConnectionBroadcaster

logger = get_logger(__name__)


class ConnectionLifecycle:
    """
    Manages the lifecycle of chat sessions.

    Responsibilities:
    - Accept new connections and admit them to the registry
    - Remove sessions (clean close, transport error, eviction)
    - Close transports of sessions removed by the server
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        accept_timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ) -> None:
        """
        Initialize lifecycle manager with dependencies.

        Args:
            registry: Live sessions
            metrics: Collects connection metrics
            accept_timeout: Timeout for the WebSocket handshake
        """
        self._registry = registry
        self._metrics = metrics
        self._accept_timeout = accept_timeout
        self._broadcaster: "ConnectionBroadcaster | None" = None
        self._shutdown = False

    def bind_broadcaster(self, broadcaster: "ConnectionBroadcaster") -> None:
        """Attach the broadcaster used for presence updates."""
        self._broadcaster = broadcaster

    @property
    def is_shutdown(self) -> bool:
        """Whether shutdown has been initiated."""
        return self._shutdown

    def set_shutdown(self, value: bool) -> None:
        """Set shutdown state."""
        self._shutdown = value

    async def connect(self, websocket: "WebSocket") -> "Session":
        """
        Accept a WebSocket connection and admit a session for it.

        Raises:
            ConnectionError: If the server is shutting down or the handshake
                fails.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=self._accept_timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")
        except Exception as e:
            raise ConnectionError(f"WebSocket accept failed: {e}")

        session = await self._registry.admit(websocket)
        self._metrics.increment_connections_accepted()
        await self._publish_presence()
        return session

    async def disconnect(self, session: "Session", reason: str = "client_disconnect") -> bool:
        """
        Remove a session whose receive loop ended.

        Idempotent: returns False if the session was already removed (for
        example evicted by the heartbeat monitor).
        """
        return await self.remove_sessions([session], reason=reason) == 1

    async def remove_sessions(
        self,
        sessions: list["Session"],
        reason: str,
        close_code: int | None = None,
    ) -> int:
        """
        Remove sessions from the registry and publish one presence update.

        Args:
            sessions: Sessions to remove. Already-removed ones are skipped.
            reason: Removal reason for logging.
            close_code: If set, the transports of removed sessions are closed
                with this code.

        Returns:
            Number of sessions this call removed.
        """
        removed = []
        for session in sessions:
            if await self._registry.remove(session):
                removed.append(session)

        if not removed:
            return 0

        for session in removed:
            self._metrics.increment_connections_closed()
            logger.info(
                "Session removed",
                connection_id=session.connection_id,
                identity=session.identity,
                reason=reason,
            )

        if close_code is not None:
            await asyncio.gather(
                *[self._close_transport(s, close_code, reason) for s in removed],
                return_exceptions=True,
            )

        await self._publish_presence()
        return len(removed)

    async def _close_transport(self, session: "Session", code: int, reason: str) -> None:
        """Close a transport, giving up after CLOSE_TIMEOUT."""
        try:
            await asyncio.wait_for(
                session.transport.close(code=code, reason=reason),
                timeout=WSConstants.CLOSE_TIMEOUT,
            )
        except Exception as e:
            logger.debug(
                "Failed to close transport",
                connection_id=session.connection_id,
                error=str(e),
            )

    async def close_all(self) -> int:
        """Close every live session with GOING_AWAY (server shutdown)."""
        sessions = await self._registry.snapshot()
        return await self.remove_sessions(
            sessions, reason="server_shutdown", close_code=WSCloseCode.GOING_AWAY
        )

    async def _publish_presence(self) -> None:
        if self._broadcaster is not None:
            await self._broadcaster.publish_presence()
