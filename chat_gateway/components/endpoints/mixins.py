"""
WebSocket Endpoint Mixins.

Each mixin handles a single concern for the chat endpoint.

Mixins:
    MessageValidationMixin: Inbound frame size check
    ConnectionLifecycleMixin: Connect/disconnect logging
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from chat_gateway.components.core.constants import NOTICE_MESSAGE_TOO_BIG
from chat_shared.config.logging import get_logger
from chat_shared.protocol import system_notice

if TYPE_CHECKING:
    from fastapi import WebSocket
    from chat_gateway.components.connection.session import Session
    from chat_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class HasSession(Protocol):
    """Protocol for classes with websocket, manager and session attributes."""

    websocket: "WebSocket"
    manager: "ConnectionManager"
    endpoint_name: str
    max_message_size: int
    session: "Session | None"


class MessageValidationMixin:
    """Rejects oversized frames without closing the connection."""

    async def validate_message_size(self: HasSession, data: str) -> bool:
        """
        Check the frame against ``max_message_size``.

        An oversized frame is a protocol error: the sender gets a notice and
        the frame is dropped.

        Returns:
            True if the frame may be processed.
        """
        if len(data) <= self.max_message_size:
            return True
        logger.warning(
            "Message size exceeded limit",
            endpoint=self.endpoint_name,
            connection_id=self.session.connection_id if self.session else None,
            size=len(data),
            max_size=self.max_message_size,
        )
        if self.session is not None:
            self.manager.metrics.increment_protocol_errors()
            await self.manager.send(self.session, system_notice(NOTICE_MESSAGE_TOO_BIG))
        return False


class ConnectionLifecycleMixin:
    """Structured logging for connection lifecycle events."""

    def log_connect(self: HasSession) -> None:
        logger.info(
            "Chat client connected",
            endpoint=self.endpoint_name,
            connection_id=self.session.connection_id if self.session else None,
            client=_client_address(self.websocket),
        )

    def log_disconnect(self: HasSession, reason: str = "client_disconnect") -> None:
        logger.info(
            "Chat client disconnected",
            endpoint=self.endpoint_name,
            connection_id=self.session.connection_id if self.session else None,
            identity=self.session.identity if self.session else None,
            reason=reason,
        )

    def log_connect_rejected(self: HasSession, reason: str) -> None:
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            client=_client_address(self.websocket),
            reason=reason,
        )


def _client_address(websocket: "WebSocket") -> str:
    client = getattr(websocket, "client", None)
    if client is None:
        return "unknown"
    return f"{client.host}:{client.port}"
