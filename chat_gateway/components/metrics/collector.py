"""
Metrics Collector for the Chat Gateway.

Centralizes counters for observability. Thread-safe increments so the
health endpoint can read a consistent snapshot at any time.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


@dataclass
class BroadcastMetrics:
    """Metrics for fan-out operations."""
    total: int = 0
    failed: int = 0
    recipients_failed: int = 0


@dataclass
class ConnectionMetrics:
    """Metrics for connection lifecycle."""
    accepted: int = 0
    closed: int = 0
    evicted: int = 0


@dataclass
class MessageMetrics:
    """Metrics for inbound message routing."""
    routed: int = 0
    protocol_errors: int = 0
    registrations: int = 0
    rejected_unregistered: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector for the gateway.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_broadcast_total()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        """Initialize metrics collector."""
        self._lock = threading.Lock()
        self._broadcast = BroadcastMetrics()
        self._connection = ConnectionMetrics()
        self._message = MessageMetrics()

    # ==========================================================================
    # Broadcast Metrics
    # ==========================================================================

    def increment_broadcast_total(self) -> None:
        with self._lock:
            self._broadcast.total += 1

    def record_broadcast_failures(self, count: int) -> None:
        """Record one broadcast that failed for ``count`` recipients."""
        with self._lock:
            self._broadcast.failed += 1
            self._broadcast.recipients_failed += count

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connections_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_connections_closed(self) -> None:
        with self._lock:
            self._connection.closed += 1

    def add_evictions(self, count: int) -> None:
        with self._lock:
            self._connection.evicted += count

    # ==========================================================================
    # Message Metrics
    # ==========================================================================

    def increment_messages_routed(self) -> None:
        with self._lock:
            self._message.routed += 1

    def increment_protocol_errors(self) -> None:
        with self._lock:
            self._message.protocol_errors += 1

    def increment_registrations(self) -> None:
        with self._lock:
            self._message.registrations += 1

    def increment_rejected_unregistered(self) -> None:
        with self._lock:
            self._message.rejected_unregistered += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Metric names follow the pattern {category}_{metric}.
        """
        with self._lock:
            return {
                "broadcasts_total": self._broadcast.total,
                "broadcasts_failed": self._broadcast.failed,
                "broadcasts_failed_recipients": self._broadcast.recipients_failed,
                "connections_accepted": self._connection.accepted,
                "connections_closed": self._connection.closed,
                "connections_evicted": self._connection.evicted,
                "messages_routed": self._message.routed,
                "messages_protocol_errors": self._message.protocol_errors,
                "messages_registrations": self._message.registrations,
                "messages_rejected_unregistered": self._message.rejected_unregistered,
            }
