"""
Connection Statistics.

Aggregates statistics from the registry, the heartbeat monitor and the
metrics collector for the health endpoint.
"""

from __future__ import annotations

import time
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_gateway.components.connection.heartbeat import HeartbeatMonitor
    from chat_gateway.components.connection.registry import ConnectionRegistry
    from chat_gateway.components.metrics.collector import MetricsCollector


class ConnectionStats:
    """Aggregates connection statistics from components."""

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        heartbeat_monitor: "HeartbeatMonitor",
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._heartbeat_monitor = heartbeat_monitor

    def get_stats(self) -> dict[str, Any]:
        """
        Get connection statistics.

        Reads without taking the registry lock; counts may be slightly stale.
        """
        return {
            "total_connections": self._registry.size,
            "registered_users": self._registry.registered_count,
            "heartbeat": self._heartbeat_monitor.get_stats(),
            "metrics": self._metrics.get_snapshot(),
        }

    async def get_detailed_stats(self) -> dict[str, Any]:
        """Stats plus per-session details from a consistent snapshot."""
        now = time.time()
        sessions = await self._registry.snapshot()
        return {
            **self.get_stats(),
            "sessions": [
                {
                    "connection_id": s.connection_id,
                    "identity": s.identity,
                    "alive": s.alive,
                    "age_seconds": round(now - s.connected_at, 1),
                }
                for s in sessions
            ],
        }
