"""
Core gateway components: constants, log sanitization, exception types.
"""

from chat_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    MSG_PING,
    MSG_PONG,
)
from chat_gateway.components.core.context import sanitize_log_data
from chat_gateway.components.core.exceptions import ChatGatewayError, SessionError

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MSG_PING",
    "MSG_PONG",
    "sanitize_log_data",
    "ChatGatewayError",
    "SessionError",
]
