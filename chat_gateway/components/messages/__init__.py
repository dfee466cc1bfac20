"""
Inbound message handling.
"""

from chat_gateway.components.messages.router import (
    MessageRouter,
    RouteAction,
    RoutingResult,
    welcome_notice,
)

__all__ = [
    "MessageRouter",
    "RouteAction",
    "RoutingResult",
    "welcome_notice",
]
