"""
Per-connection session record.

One Session exists per accepted WebSocket. It is owned by the
ConnectionRegistry and referenced (never copied) by the router and the
heartbeat monitor.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from starlette.websockets import WebSocketState

from chat_gateway.components.core.exceptions import SessionError

if TYPE_CHECKING:
    from fastapi import WebSocket


@dataclass(eq=False)
class Session:
    """
    State of one live connection.

    Attributes:
        connection_id: Registry key, unique for the life of the process.
        transport: The WebSocket. Exclusively owned by this session.
        identity: Display name, None until registration succeeds.
        alive: Cleared by the heartbeat monitor before each probe and set
               again when the peer acknowledges it.
        connected_at: Unix timestamp of admission.
    """

    connection_id: int
    transport: "WebSocket"
    identity: str | None = None
    alive: bool = True
    connected_at: float = field(default_factory=time.time)

    @property
    def is_registered(self) -> bool:
        return self.identity is not None

    def assign_identity(self, identity: str) -> None:
        """
        Move the session from Unregistered to Registered.

        Raises:
            SessionError: If an identity was already assigned.
        """
        if self.identity is not None:
            raise SessionError(
                f"Session {self.connection_id} already registered as {self.identity!r}"
            )
        self.identity = identity

    @property
    def is_open(self) -> bool:
        """
        Whether the transport can currently be written to.

        Starlette exposes no transitional states, so a transport may still
        report CONNECTED briefly after the peer started closing.
        """
        return (
            self.transport.client_state == WebSocketState.CONNECTED
            and self.transport.application_state == WebSocketState.CONNECTED
        )

    def mark_alive(self) -> None:
        self.alive = True

    def __repr__(self) -> str:
        return (
            f"Session(connection_id={self.connection_id}, "
            f"identity={self.identity!r}, alive={self.alive})"
        )
