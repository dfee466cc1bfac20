"""
Connection Broadcaster.

Handles sending frames to sessions: one session, every open session, and the
presence snapshot. Sends to different peers run concurrently and each one is
bounded by a timeout, so one slow peer cannot stall the fan-out.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from chat_gateway.components.core.constants import WSConstants
from chat_shared.config.logging import get_logger
from chat_shared.protocol import encode_message, presence_event

if TYPE_CHECKING:
    from chat_gateway.components.connection.registry import ConnectionRegistry
    from chat_gateway.components.connection.session import Session
    from chat_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


@dataclass
class SendResult:
    """Outcome of sending one frame to a group of sessions."""

    sent: int = 0
    failed: list["Session"] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.sent + len(self.failed)


class ConnectionBroadcaster:
    """
    Sends frames to sessions.

    Responsibilities:
    - Send to an individual session
    - Fan out to every open session (sender included)
    - Publish the presence snapshot
    - Report sessions whose send failed through ``on_dead`` so they are
      removed right away

    Transport errors never propagate out of this class.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        on_dead: Callable[[list["Session"]], Awaitable[Any]],
        send_timeout: float = WSConstants.SEND_TIMEOUT,
    ) -> None:
        """
        Initialize broadcaster with dependencies.

        Args:
            registry: Live sessions
            metrics: Collects broadcast metrics
            on_dead: Callback receiving sessions whose transport failed
            send_timeout: Bound on a single send, in seconds
        """
        self._registry = registry
        self._metrics = metrics
        self._on_dead = on_dead
        self._send_timeout = send_timeout

    async def _send_text(self, session: "Session", text: str) -> bool:
        """
        Send a text frame to one session, returning success status.

        Never raises for transport problems.
        """
        if not session.is_open:
            return False
        try:
            await asyncio.wait_for(
                session.transport.send_text(text), timeout=self._send_timeout
            )
            return True
        except asyncio.TimeoutError:
            logger.debug(
                "Send timed out",
                connection_id=session.connection_id,
                timeout=self._send_timeout,
            )
            return False
        except Exception as e:
            logger.debug(
                "Send failed",
                connection_id=session.connection_id,
                error=str(e),
            )
            return False

    async def send_raw(self, session: "Session", text: str) -> bool:
        """
        Send a bare text frame (keep-alive reply) under the send timeout.

        A failure is not reported to ``on_dead``; the receive loop of the
        session notices the broken transport itself.
        """
        return await self._send_text(session, text)

    async def send_text_many(
        self,
        sessions: list["Session"],
        text: str,
    ) -> SendResult:
        """
        Send the same text frame to several sessions concurrently.

        Failed sessions are returned, not reported to ``on_dead``; callers
        that own removal (the heartbeat monitor) use this directly.
        """
        result = SendResult()
        if not sessions:
            return result

        outcomes = await asyncio.gather(
            *[self._send_text(s, text) for s in sessions],
            return_exceptions=True,
        )
        for session, outcome in zip(sessions, outcomes):
            if outcome is True:
                result.sent += 1
            else:
                if isinstance(outcome, BaseException):
                    logger.debug(
                        "Send raised",
                        connection_id=session.connection_id,
                        error=str(outcome),
                    )
                result.failed.append(session)
        return result

    async def send(self, session: "Session", payload: dict[str, Any]) -> bool:
        """
        Send a message to a single session.

        A failed send removes the session through ``on_dead``.
        """
        if await self._send_text(session, encode_message(payload)):
            return True
        await self._on_dead([session])
        return False

    async def broadcast(self, payload: dict[str, Any], context: str = "broadcast") -> int:
        """
        Send a message to every session with an open transport.

        Sessions mid-close are skipped. Sessions whose send fails are
        removed through ``on_dead``.

        Returns:
            Number of sessions that received the message.
        """
        sessions: list["Session"] = []
        await self._registry.for_each_open(sessions.append)
        result = await self.send_text_many(sessions, encode_message(payload))

        self._metrics.increment_broadcast_total()
        if result.failed:
            self._metrics.record_broadcast_failures(len(result.failed))
            logger.debug(
                "Broadcast completed with failures",
                context=context,
                sent=result.sent,
                failed=len(result.failed),
                total=result.total,
            )
            await self._on_dead(result.failed)

        return result.sent

    async def publish_presence(self) -> int:
        """
        Push the full list of registered display names to every open session.

        Full snapshot rather than a delta: chat populations are small.
        """
        names = await self._registry.names()
        return await self.broadcast(presence_event(names), context="presence")
