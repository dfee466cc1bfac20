"""
Heartbeat Monitor for the Chat Gateway.

Periodically probes every session and evicts the ones that did not answer
the previous probe. This is the only path that detects a peer which
disappeared without a clean close.

Each cycle, for every session in a registry snapshot:
1. ``alive`` is False (no acknowledgment since the last probe): evict.
2. Otherwise clear ``alive`` and send a ``ping`` frame. The ``pong`` comes
   back through the session's receive loop and sets ``alive`` again.

A silent peer is therefore evicted on its second missed cycle, giving a
grace period of up to two intervals.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from chat_gateway.components.core.constants import (
    MSG_PING,
    MSG_PONG,
    WSCloseCode,
    WSConstants,
)
from chat_shared.config.logging import get_logger

if TYPE_CHECKING:
    from chat_gateway.components.connection.registry import ConnectionRegistry
    from chat_gateway.components.connection.session import Session
    from chat_gateway.components.metrics.collector import MetricsCollector
    from chat_gateway.core.connection.broadcaster import ConnectionBroadcaster

logger = get_logger(__name__)

RemoveSessions = Callable[..., Awaitable[int]]


class HeartbeatMonitor:
    """
    Timer-driven liveness check over the connection registry.

    Usage:
        monitor = HeartbeatMonitor(registry, broadcaster, lifecycle.remove_sessions, metrics)
        monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        broadcaster: "ConnectionBroadcaster",
        remove_sessions: RemoveSessions,
        metrics: "MetricsCollector",
        interval: float = WSConstants.HEARTBEAT_INTERVAL,
    ) -> None:
        """
        Initialize heartbeat monitor.

        Args:
            registry: Live sessions to probe.
            broadcaster: Used to send the probe frames.
            remove_sessions: Removes evicted sessions, closes their transports
                and publishes presence.
            metrics: Collects eviction counts.
            interval: Seconds between cycles.
        """
        self._registry = registry
        self._broadcaster = broadcaster
        self._remove_sessions = remove_sessions
        self._metrics = metrics
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._cycles = 0

    @property
    def interval(self) -> float:
        """Get the probe interval in seconds."""
        return self._interval

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_cycle(self) -> int:
        """
        Run one probe/evict cycle.

        Returns:
            Number of sessions evicted.
        """
        stale: list["Session"] = []
        to_probe: list["Session"] = []

        for session in await self._registry.snapshot():
            if not session.alive:
                stale.append(session)
                continue
            session.alive = False
            to_probe.append(session)

        probe_result = await self._broadcaster.send_text_many(to_probe, MSG_PING)
        if probe_result.failed:
            logger.debug("Probe send failed", count=len(probe_result.failed))

        evicted = 0
        to_evict = stale + probe_result.failed
        if to_evict:
            evicted = await self._remove_sessions(
                to_evict,
                reason="heartbeat_timeout",
                close_code=WSCloseCode.GOING_AWAY,
            )
            self._metrics.add_evictions(evicted)
            if evicted:
                logger.info(
                    "Evicted unresponsive sessions",
                    count=evicted,
                    missed_probe=len(stale),
                    probe_failed=len(probe_result.failed),
                )

        self._cycles += 1
        return evicted

    async def run(self) -> None:
        """Run cycles forever, one every ``interval`` seconds."""
        while True:
            try:
                await asyncio.sleep(self._interval)
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in heartbeat cycle", error=str(e), exc_info=True)

    def start(self) -> asyncio.Task:
        """Start the monitor as a background task."""
        if self.is_running:
            logger.warning("Heartbeat monitor already running")
            return self._task
        self._task = asyncio.create_task(self.run(), name="heartbeat_monitor")
        logger.info("Heartbeat monitor started", interval=self._interval)
        return self._task

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Heartbeat monitor stopped", cycles=self._cycles)

    def get_stats(self) -> dict[str, Any]:
        return {
            "interval_seconds": self._interval,
            "cycles": self._cycles,
            "running": self.is_running,
        }


async def handle_heartbeat(
    session: "Session",
    data: str,
    send_text: Callable[[str], Awaitable[Any]],
) -> bool:
    """
    Handle keep-alive control frames below the message router.

    - ``pong`` acknowledges a probe and marks the session alive.
    - ``ping`` from the peer is answered with ``pong``.

    Args:
        session: The session the frame arrived on.
        data: The received frame.
        send_text: Sends a raw text frame back to the peer.

    Returns:
        True if the frame was a control frame and was handled, False otherwise.
    """
    if data == MSG_PONG:
        session.mark_alive()
        return True
    if data == MSG_PING:
        try:
            await send_text(MSG_PONG)
        except (ConnectionError, RuntimeError, OSError):
            # Connection may have closed - the receive loop will notice
            pass
        except Exception as e:
            logger.warning(
                "Unexpected error sending heartbeat response",
                error=type(e).__name__,
                message=str(e),
            )
        return True
    return False
