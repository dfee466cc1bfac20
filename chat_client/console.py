"""
Interactive chat console.

Reads lines from stdin and drives the reconnection controller; renders
server events with Rich.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any, AsyncIterator

from rich.console import Console
from rich.text import Text

from chat_client.controller import ReconnectionController
from chat_shared.config.logging import get_logger
from chat_shared.protocol import MSG_TYPE_PRESENCE, MSG_TYPE_TEXT

logger = get_logger(__name__)

EXIT_COMMAND = "exit"
NAME_PROMPT = "Enter display name: "


def render_event(event: dict[str, Any]) -> Text | None:
    """
    Format one server message for display.

    Returns:
        The styled line, or None for messages the console does not show.

    Raises:
        ValueError: If a presence message carries no list of users.
    """
    if event.get("system"):
        return Text(f"[SYSTEM] {event.get('message', '')}", style="yellow")
    if event.get("type") == MSG_TYPE_TEXT:
        return Text(f"[{event.get('sender', '')}] {event.get('body', '')}", style="green")
    if event.get("type") == MSG_TYPE_PRESENCE:
        users = event.get("users")
        if not isinstance(users, list):
            raise ValueError(f"presence users must be a list, got {type(users).__name__}")
        return Text(f"[USERS] {', '.join(str(u) for u in users)}", style="cyan")
    return None


class ChatConsole:
    """
    Console front end for one client run.

    Usage:
        chat = ChatConsole(url)
        exit_code = await chat.run(stdin_lines())
    """

    def __init__(
        self,
        url: str | None = None,
        console: Console | None = None,
        **controller_options: Any,
    ) -> None:
        """
        Args:
            url: Gateway endpoint.
            console: Rich console to render to.
            controller_options: Extra ReconnectionController arguments
                (policy, shutdown_grace, connect).
        """
        self._console = console or Console(highlight=False)
        self._controller = ReconnectionController(
            url,
            on_event=self.show_event,
            on_notice=self.show_notice,
            **controller_options,
        )
        self._identity_chosen = False
        self._interrupted = False
        self._input_task: asyncio.Task | None = None

    @property
    def controller(self) -> ReconnectionController:
        return self._controller

    def show_event(self, event: dict[str, Any]) -> None:
        line = render_event(event)
        if line is not None:
            self._console.print(line)

    def show_notice(self, message: str) -> None:
        self._console.print(message, markup=False)

    async def run(self, lines: AsyncIterator[str]) -> int:
        """
        Run until ``exit``, end of input or an interrupt.

        Returns:
            Process exit status.
        """
        run_task = asyncio.create_task(self._controller.run(), name="chat_controller")
        self._input_task = asyncio.create_task(self._read_input(lines), name="chat_input")
        self._install_interrupt_handler()

        try:
            await asyncio.wait([self._input_task])
            if not self._input_task.cancelled():
                self._input_task.result()
        finally:
            # Handler stays installed until the run loop is gone; a Ctrl+C
            # during the close grace period is then a no-op
            try:
                await self._controller.shutdown()
                self._console.print("Exiting...")
                await self._finish(run_task)
            finally:
                self._remove_interrupt_handler()
        return 0

    def interrupt(self) -> None:
        """Ctrl+C handler. A second interrupt while exiting is ignored."""
        if self._interrupted or self._controller.exiting:
            return
        self._interrupted = True
        self._console.print("\nReceived Ctrl+C. Closing connection...")
        if self._input_task is not None:
            self._input_task.cancel()

    async def _read_input(self, lines: AsyncIterator[str]) -> None:
        self._console.print(NAME_PROMPT, end="")
        async for line in lines:
            line = line.strip()
            if line.lower() == EXIT_COMMAND:
                return

            if not self._identity_chosen:
                try:
                    await self._controller.register(line)
                except ValueError:
                    self._console.print("Display name cannot be empty. Please try again.")
                    self._console.print(NAME_PROMPT, end="")
                    continue
                self._identity_chosen = True
                continue

            if line:
                await self._controller.send_text(line)

    async def _finish(self, run_task: asyncio.Task) -> None:
        """Wait briefly for the run loop to notice the exit, then cancel it."""
        done, _ = await asyncio.wait([run_task], timeout=1.0)
        if not done:
            run_task.cancel()
            await asyncio.gather(run_task, return_exceptions=True)

    def _install_interrupt_handler(self) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, self.interrupt)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            logger.debug("SIGINT handler not installed")

    def _remove_interrupt_handler(self) -> None:
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


async def stdin_lines() -> AsyncIterator[str]:
    """Yield lines from stdin without blocking the event loop; stops at EOF."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    while True:
        raw = await reader.readline()
        if not raw:
            return
        yield raw.decode("utf-8", errors="replace")


async def run_client(url: str | None = None, console: Console | None = None) -> int:
    """Entry point used by ``chat connect``."""
    chat = ChatConsole(url, console=console)
    return await chat.run(stdin_lines())
