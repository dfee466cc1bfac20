"""
Connection components: session record, registry, heartbeat monitor.
"""

from chat_gateway.components.connection.session import Session
from chat_gateway.components.connection.registry import ConnectionRegistry
from chat_gateway.components.connection.heartbeat import HeartbeatMonitor, handle_heartbeat

__all__ = [
    "Session",
    "ConnectionRegistry",
    "HeartbeatMonitor",
    "handle_heartbeat",
]
