"""
Chat Gateway Core Module.

- connection/: Connection lifecycle, broadcasting, stats
"""

from chat_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionStats,
    SendResult,
)

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionStats",
    "SendResult",
]
