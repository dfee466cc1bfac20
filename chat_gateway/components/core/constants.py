"""
Chat Gateway Constants.

Centralized constants with documentation explaining each value.
"""

from enum import IntEnum
from typing import Final

from chat_shared.protocol import MSG_PING, MSG_PONG

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MSG_PING",
    "MSG_PONG",
    "NOTICE_INVALID_IDENTITY",
    "NOTICE_REGISTER_FIRST",
    "NOTICE_MESSAGE_TOO_BIG",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or peer evicted
    PROTOCOL_ERROR = 1002  # Protocol error
    SERVER_ERROR = 1011  # Unexpected server error


class WSConstants:
    """
    Gateway operational constants.

    These are defaults used when settings are not available. At runtime the
    ConnectionManager reads ``chat_shared.config.settings`` which can
    override them via environment variables.
    """

    # HEARTBEAT_INTERVAL: 30 seconds
    # A peer is probed once per cycle and evicted when it has not answered
    # the previous probe, so the worst case before eviction is two cycles.
    HEARTBEAT_INTERVAL: Final[float] = 30.0

    # SEND_TIMEOUT: 5 seconds
    # Bound on a single send. A peer that cannot take a frame within this
    # window is treated as a transport failure and removed.
    SEND_TIMEOUT: Final[float] = 5.0

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # The handshake should complete within TCP timeout; rejects stuck peers.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # CLOSE_TIMEOUT: 2 seconds
    # Bound on closing an evicted transport; the peer may never answer.
    CLOSE_TIMEOUT: Final[float] = 2.0

    # MAX_MESSAGE_SIZE: 64 KB
    MAX_MESSAGE_SIZE: Final[int] = 64 * 1024


# Notices sent to a single session
NOTICE_INVALID_IDENTITY: Final[str] = "Invalid display name"
NOTICE_REGISTER_FIRST: Final[str] = "Please set a display name before sending messages"
NOTICE_MESSAGE_TOO_BIG: Final[str] = "Message too large"
