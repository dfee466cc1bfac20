"""
Connection Management Module.

Components composed by ConnectionManager:
- lifecycle.py: Connection accept/removal
- broadcaster.py: Sending and fan-out
- stats.py: Statistics aggregation
"""

from chat_gateway.core.connection.lifecycle import ConnectionLifecycle
from chat_gateway.core.connection.broadcaster import ConnectionBroadcaster, SendResult
from chat_gateway.core.connection.stats import ConnectionStats

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionStats",
    "SendResult",
]
