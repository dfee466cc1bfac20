"""
Observability components.
"""

from chat_gateway.components.metrics.collector import (
    BroadcastMetrics,
    ConnectionMetrics,
    MessageMetrics,
    MetricsCollector,
)

__all__ = [
    "BroadcastMetrics",
    "ConnectionMetrics",
    "MessageMetrics",
    "MetricsCollector",
]
