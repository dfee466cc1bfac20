"""
Message Router - applies the chat protocol to inbound frames.

Per-session state machine: Unregistered -> Registered (terminal for the
life of the connection).

Usage:
    router = MessageRouter(broadcaster, metrics)
    result = await router.handle(session, raw_frame)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

from chat_gateway.components.core.constants import (
    NOTICE_INVALID_IDENTITY,
    NOTICE_REGISTER_FIRST,
)
from chat_gateway.components.core.context import sanitize_log_data
from chat_shared.config.logging import get_logger
from chat_shared.protocol import (
    MSG_TYPE_IDENTITY,
    MSG_TYPE_TEXT,
    ProtocolError,
    decode_message,
    system_notice,
    text_event,
)

if TYPE_CHECKING:
    from chat_gateway.components.connection.session import Session
    from chat_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class BroadcasterProtocol(Protocol):
    """Protocol for the broadcaster to avoid circular imports."""

    async def send(self, session: "Session", payload: dict[str, Any]) -> bool: ...

    async def broadcast(self, payload: dict[str, Any], context: str = ...) -> int: ...

    async def publish_presence(self) -> int: ...


class RouteAction(str, Enum):
    """What the router did with a frame."""

    REGISTERED = "registered"
    REREGISTERED = "reregistered"
    REJECTED_IDENTITY = "rejected_identity"
    BROADCAST = "broadcast"
    REJECTED_UNREGISTERED = "rejected_unregistered"
    PROTOCOL_ERROR = "protocol_error"
    IGNORED = "ignored"


@dataclass
class RoutingResult:
    """Result of routing one frame."""

    action: RouteAction
    recipients: int = 0


def welcome_notice(identity: str) -> dict[str, Any]:
    return system_notice(f"Welcome, {identity}")


class MessageRouter:
    """
    Routes decoded messages from one session.

    Routing rules:
    - malformed frame: error notice to the sender only
    - identity: register the session, welcome it, publish presence
    - text: fan out ``{sender, body}`` to every open session, sender included
    - any other or missing type: ignored
    """

    def __init__(
        self,
        broadcaster: BroadcasterProtocol,
        metrics: "MetricsCollector",
    ) -> None:
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._handlers: dict[str, Callable[["Session", dict[str, Any]], Awaitable[RoutingResult]]] = {
            MSG_TYPE_IDENTITY: self._handle_identity,
            MSG_TYPE_TEXT: self._handle_text,
        }

    async def handle(self, session: "Session", raw: str | bytes) -> RoutingResult:
        """
        Decode and apply one inbound frame.

        Never raises for bad input; every protocol problem is reported to
        the sending session only and the connection stays open.
        """
        try:
            message = decode_message(raw)
        except ProtocolError as e:
            return await self._reject_protocol(session, f"Error parsing message: {e}")

        msg_type = message.get("type")
        handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            logger.debug(
                "Ignoring message with unknown type",
                connection_id=session.connection_id,
                type=sanitize_log_data(str(msg_type)),
            )
            return RoutingResult(RouteAction.IGNORED)

        self._metrics.increment_messages_routed()
        return await handler(session, message)

    async def _handle_identity(
        self, session: "Session", message: dict[str, Any]
    ) -> RoutingResult:
        if session.is_registered:
            # Identity is immutable: re-registration only repeats the welcome
            logger.debug(
                "Re-registration ignored",
                connection_id=session.connection_id,
                identity=session.identity,
            )
            await self._broadcaster.send(session, welcome_notice(session.identity))
            return RoutingResult(RouteAction.REREGISTERED, recipients=1)

        identity = message.get("identity")
        if not isinstance(identity, str) or not identity.strip():
            logger.info(
                "Registration rejected",
                connection_id=session.connection_id,
                identity=sanitize_log_data(str(identity)),
            )
            await self._broadcaster.send(session, system_notice(NOTICE_INVALID_IDENTITY))
            return RoutingResult(RouteAction.REJECTED_IDENTITY, recipients=1)

        session.assign_identity(identity.strip())
        self._metrics.increment_registrations()
        logger.info(
            "Session registered",
            connection_id=session.connection_id,
            identity=sanitize_log_data(session.identity),
        )
        await self._broadcaster.send(session, welcome_notice(session.identity))
        recipients = await self._broadcaster.publish_presence()
        return RoutingResult(RouteAction.REGISTERED, recipients=recipients)

    async def _handle_text(
        self, session: "Session", message: dict[str, Any]
    ) -> RoutingResult:
        if not session.is_registered:
            self._metrics.increment_rejected_unregistered()
            await self._broadcaster.send(session, system_notice(NOTICE_REGISTER_FIRST))
            return RoutingResult(RouteAction.REJECTED_UNREGISTERED, recipients=1)

        body = message.get("body")
        if not isinstance(body, str):
            return await self._reject_protocol(
                session, "Error parsing message: 'body' must be a string"
            )

        recipients = await self._broadcaster.broadcast(
            text_event(session.identity, body),
            context=f"text:{session.connection_id}",
        )
        logger.debug(
            "Text fanned out",
            connection_id=session.connection_id,
            recipients=recipients,
            body=sanitize_log_data(body),
        )
        return RoutingResult(RouteAction.BROADCAST, recipients=recipients)

    async def _reject_protocol(self, session: "Session", notice: str) -> RoutingResult:
        self._metrics.increment_protocol_errors()
        logger.info(
            "Protocol error",
            connection_id=session.connection_id,
            detail=sanitize_log_data(notice),
        )
        await self._broadcaster.send(session, system_notice(notice))
        return RoutingResult(RouteAction.PROTOCOL_ERROR, recipients=1)
