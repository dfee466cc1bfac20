"""
WebSocket endpoints.
"""

from chat_gateway.components.endpoints.base import ChatEndpoint
from chat_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

__all__ = [
    "ChatEndpoint",
    "ConnectionLifecycleMixin",
    "MessageValidationMixin",
]
