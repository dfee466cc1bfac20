"""
Chat WebSocket Endpoint.

One endpoint instance runs per accepted connection. Its receive loop is the
single consumer of that connection's inbound stream, so frames from one
session are handled strictly in arrival order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from chat_gateway.components.core.constants import WSConstants
from chat_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)
from chat_shared.config.logging import bind_connection, get_logger, unbind_connection

if TYPE_CHECKING:
    from chat_gateway.components.connection.session import Session
    from chat_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class ChatEndpoint(
    MessageValidationMixin,
    ConnectionLifecycleMixin,
):
    """
    Per-connection worker for the chat endpoint.

    Lifecycle:
    1. Accept and admit a session
    2. Receive loop: size check, keep-alive frames, message routing
    3. Remove the session when the loop ends for any reason

    Usage:
        endpoint = ChatEndpoint(websocket, manager)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str = "/ws/chat",
        max_message_size: int = WSConstants.MAX_MESSAGE_SIZE,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            manager: ConnectionManager instance.
            endpoint_name: Name for logging.
            max_message_size: Largest inbound frame accepted, in characters.
        """
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.max_message_size = max_message_size
        self.session: "Session | None" = None

    async def run(self) -> None:
        """
        Main entry point - run the endpoint until the connection ends.

        Transport errors end this connection only; they never propagate to
        the server.
        """
        try:
            self.session = await self.manager.connect(self.websocket)
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            return

        log_context = bind_connection(self.session.connection_id)
        self.log_connect()

        reason = "client_disconnect"
        try:
            await self._message_loop()
        except WebSocketDisconnect as e:
            reason = f"client_disconnect:{e.code}"
        except Exception as e:
            reason = "transport_error"
            logger.error(
                "Unexpected error in message loop",
                endpoint=self.endpoint_name,
                error=str(e),
                exc_info=True,
            )
        finally:
            self.log_disconnect(reason)
            await self.manager.disconnect(self.session, reason=reason)
            unbind_connection(log_context)

    async def _message_loop(self) -> None:
        """
        Receive frames until the peer disconnects.

        Handles:
        - Frame size validation
        - Keep-alive frames (``pong`` acknowledgments, peer ``ping``)
        - Routing of structured messages
        """
        while True:
            data = await self._receive_frame()

            if not await self.validate_message_size(data):
                continue

            await self.manager.handle_frame(self.session, data)

    async def _receive_frame(self) -> str:
        """
        Receive one data frame as text.

        Binary frames are decoded as UTF-8 so a client sending JSON as bytes
        is still understood; undecodable bytes surface as a parse error.

        Raises:
            WebSocketDisconnect: When the peer closes.
        """
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        text = message.get("text")
        if text is not None:
            return text
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")
