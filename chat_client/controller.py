"""
Reconnection Controller.

Owns the client's single logical connection slot. The run loop connects,
replays the chosen display name, reads frames until the link drops and then
schedules exactly one reconnect, until shutdown is requested.

States:
    DISCONNECTED -> CONNECTING   at start, and after an unexpected loss
    CONNECTING   -> OPEN         handshake done; identity resent if chosen
    OPEN         -> DISCONNECTED close or transport error while not exiting
    OPEN         -> CLOSING      shutdown requested
    CLOSING      -> DISCONNECTED close completed
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from chat_client.retry import ReconnectPolicy
from chat_shared.config.logging import get_logger
from chat_shared.config.settings import settings
from chat_shared.protocol import (
    MSG_PING,
    MSG_PONG,
    ProtocolError,
    decode_message,
    encode_message,
    identity_message,
    text_message,
)

logger = get_logger(__name__)

NOTICE_NOT_CONNECTED = "Not connected to server. Please wait or try reconnecting."
NOTICE_WAITING = "Waiting for connection..."
NOTICE_DISCONNECTED = "Disconnected from server."

EventHandler = Callable[[dict[str, Any]], None]
NoticeHandler = Callable[[str], None]


class ClientState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class ReconnectionController:
    """
    Resilient client connection.

    Usage:
        controller = ReconnectionController(url, on_event=render, on_notice=show)
        task = asyncio.create_task(controller.run())
        await controller.register("alice")
        await controller.send_text("hi")
        await controller.shutdown()
        await task
    """

    def __init__(
        self,
        url: str | None = None,
        on_event: EventHandler | None = None,
        on_notice: NoticeHandler | None = None,
        policy: ReconnectPolicy | None = None,
        shutdown_grace: float | None = None,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        """
        Args:
            url: Server endpoint. Defaults to ``settings.chat_server_url``.
            on_event: Called with every decoded server message.
            on_notice: Called with local status lines.
            policy: Reconnect delay policy. Defaults to the configured one.
            shutdown_grace: Longest wait for the close to complete on shutdown.
            connect: Opens a connection; ``await connect(url, ...)`` must
                return an object with ``send``, ``close`` and async iteration.
        """
        self._url = url or settings.chat_server_url
        self._on_event = on_event or (lambda event: None)
        self._on_notice = on_notice or (lambda message: None)
        self._policy = policy or ReconnectPolicy.from_settings(settings)
        self._shutdown_grace = (
            shutdown_grace if shutdown_grace is not None else settings.client_shutdown_grace
        )
        self._connect = connect

        self._state = ClientState.DISCONNECTED
        self._ws: Any = None
        self._identity: str | None = None
        self._exiting = False
        self._attempt = 0
        self._connections = 0

        self._exit_requested = asyncio.Event()
        self._disconnected = asyncio.Event()
        self._disconnected.set()
        self._close_task: asyncio.Task | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def exiting(self) -> bool:
        return self._exiting

    @property
    def connections(self) -> int:
        """Number of successful handshakes so far."""
        return self._connections

    # =========================================================================
    # Run loop
    # =========================================================================

    async def run(self) -> None:
        """Connect and keep reconnecting until shutdown is requested."""
        while not self._exiting:
            await self._connect_once()
            if self._exiting:
                break

            delay = self._policy.delay_for(self._attempt)
            self._attempt += 1
            self._on_notice(f"Attempting to reconnect in {delay:g} seconds...")
            logger.info("Reconnect scheduled", delay=delay, attempt=self._attempt)

            # Shutdown cuts the wait short
            try:
                await asyncio.wait_for(self._exit_requested.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        self._set_disconnected()
        logger.debug("Controller run loop finished")

    async def _connect_once(self) -> None:
        """One connection attempt, then read until the link drops."""
        self._state = ClientState.CONNECTING
        self._disconnected.clear()

        try:
            ws = await self._connect(self._url, ping_interval=None)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            self._on_notice(f"Connection error: {e}")
            logger.warning("Connection attempt failed", url=self._url, error=str(e))
            self._set_disconnected()
            return

        if self._exiting:
            # Shutdown arrived during the handshake
            await self._close_quietly(ws)
            self._set_disconnected()
            return

        self._ws = ws
        self._state = ClientState.OPEN
        self._attempt = 0
        self._connections += 1
        logger.info("Connected", url=self._url, connections=self._connections)

        try:
            if self._identity:
                await self._send_identity()
            async for raw in ws:
                await self._handle_frame(raw)
        except (WebSocketException, OSError) as e:
            # ConnectionClosed and protocol violations alike end this link only
            logger.info("Connection lost", error=str(e))
        finally:
            self._ws = None
            self._set_disconnected()
            self._on_notice(NOTICE_DISCONNECTED)

    async def _handle_frame(self, raw: str | bytes) -> None:
        if raw == MSG_PING:
            await self._ws.send(MSG_PONG)
            return
        if raw == MSG_PONG:
            return
        try:
            message = decode_message(raw)
        except ProtocolError:
            self._report_invalid(raw)
            return
        try:
            self._on_event(message)
        except Exception as e:
            # A frame the display cannot handle must not end the read loop
            logger.warning("Event handler failed", error=str(e), exc_info=True)
            self._report_invalid(raw)

    def _report_invalid(self, raw: str | bytes) -> None:
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        self._on_notice(f"Received invalid message: {text}")

    def _set_disconnected(self) -> None:
        self._state = ClientState.DISCONNECTED
        self._disconnected.set()

    # =========================================================================
    # Commands
    # =========================================================================

    async def register(self, name: str) -> bool:
        """
        Choose the display name for this run and send it if connected.

        The name is resent automatically after every reconnect.

        Returns:
            True if the identity was sent now, False if it waits for the link.

        Raises:
            ValueError: If the name is empty after trimming.
        """
        name = name.strip()
        if not name:
            raise ValueError("Display name cannot be empty")
        self._identity = name

        if self._state is not ClientState.OPEN:
            self._on_notice(NOTICE_WAITING)
            return False
        return await self._send_identity()

    async def send_text(self, body: str) -> bool:
        """
        Send a chat line if the link is open.

        Never queued: while not connected the line is dropped with a notice.
        """
        body = body.strip()
        if not body:
            return False
        if self._state is not ClientState.OPEN or self._ws is None:
            self._on_notice(NOTICE_NOT_CONNECTED)
            return False
        try:
            await self._ws.send(encode_message(text_message(body)))
        except (ConnectionClosed, OSError):
            self._on_notice(NOTICE_NOT_CONNECTED)
            return False
        return True

    async def _send_identity(self) -> bool:
        try:
            await self._ws.send(encode_message(identity_message(self._identity)))
        except (ConnectionClosed, OSError) as e:
            logger.debug("Failed to send identity", error=str(e))
            return False
        self._on_notice(f"Connected as {self._identity}")
        return True

    async def shutdown(self) -> bool:
        """
        Intentional exit.

        Requests the close and returns once it completes or the grace
        timeout expires, whichever comes first. A pending reconnect delay is
        cancelled. Idempotent.

        Returns:
            True on the first call, False if shutdown was already requested.
        """
        if self._exiting:
            return False
        self._exiting = True
        self._exit_requested.set()

        ws = self._ws
        if ws is not None:
            self._state = ClientState.CLOSING
            self._close_task = asyncio.create_task(
                self._close_quietly(ws), name="chat_client_close"
            )

        try:
            await asyncio.wait_for(self._disconnected.wait(), timeout=self._shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning("Close did not complete in time", grace=self._shutdown_grace)
        logger.info("Client shut down")
        return True

    async def _close_quietly(self, ws: Any) -> None:
        try:
            await ws.close()
        except (ConnectionClosed, OSError) as e:
            logger.debug("Error while closing", error=str(e))
