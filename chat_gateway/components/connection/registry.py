"""
Connection Registry - the authoritative set of live sessions.

Sessions are keyed by connection id, never by display name: names are not
unique and are not a lookup key.

Thread Safety:
- All mutation and every snapshot happen under a single asyncio.Lock
- The lock is held only for O(1) mutation or an O(n) snapshot copy,
  never across a send
- Iteration always walks a snapshot, so removal during a fan-out or a
  heartbeat cycle is safe
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from chat_gateway.components.connection.session import Session
from chat_shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    Shared, lock-guarded collection of live sessions.

    Usage:
        registry = ConnectionRegistry()
        session = await registry.admit(websocket)
        ...
        if await registry.remove(session):
            ...  # this call removed it
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        # dicts keep insertion order, which gives names() a stable order
        self._sessions: dict[int, Session] = {}
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def size(self) -> int:
        """Number of live sessions."""
        return len(self._sessions)

    @property
    def registered_count(self) -> int:
        """Number of sessions with an identity."""
        return sum(1 for s in list(self._sessions.values()) if s.is_registered)

    async def admit(self, transport: "WebSocket") -> Session:
        """
        Create a session for an accepted transport and insert it.

        The session starts without identity and alive.
        """
        async with self._lock:
            session = Session(connection_id=next(self._ids), transport=transport)
            self._sessions[session.connection_id] = session
        logger.debug("Session admitted", connection_id=session.connection_id)
        return session

    async def remove(self, session: Session) -> bool:
        """
        Remove a session.

        Idempotent: safe to call several times and concurrently with
        iteration.

        Returns:
            True only for the call that actually removed the session.
        """
        async with self._lock:
            removed = self._sessions.pop(session.connection_id, None)
        if removed is None:
            return False
        logger.debug(
            "Session removed",
            connection_id=session.connection_id,
            identity=session.identity,
        )
        return True

    def get(self, connection_id: int) -> Session | None:
        """Look up a session by connection id."""
        return self._sessions.get(connection_id)

    def __contains__(self, session: object) -> bool:
        if not isinstance(session, Session):
            return False
        return self._sessions.get(session.connection_id) is session

    async def snapshot(self) -> list[Session]:
        """Copy of all live sessions in admission order."""
        async with self._lock:
            return list(self._sessions.values())

    async def open_sessions(self) -> list[Session]:
        """Snapshot of sessions whose transport is currently writable."""
        return [s for s in await self.snapshot() if s.is_open]

    async def for_each_open(
        self,
        fn: Callable[[Session], Awaitable[Any] | Any],
    ) -> int:
        """
        Apply ``fn`` to every session whose transport is writable.

        Sessions mid-close are skipped rather than reported. ``fn`` may be a
        plain function or a coroutine function; it runs outside the lock.

        Returns:
            Number of sessions ``fn`` was applied to.
        """
        applied = 0
        for session in await self.open_sessions():
            result = fn(session)
            if inspect.isawaitable(result):
                await result
            applied += 1
        return applied

    async def names(self) -> list[str]:
        """Display names of registered sessions, in admission order."""
        return [s.identity for s in await self.snapshot() if s.identity is not None]
