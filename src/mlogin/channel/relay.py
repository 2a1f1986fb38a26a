"""
Terminal relay: the interactive phase of the session channel.

Protocol (session layer):

    Client -> Agent:  shell:{"type": "start", "cwd": ..., "term": ...,
                             "columns": 80, "lines": 24,
                             "command": "/bin/bash", "arguments": []}
    Agent -> Client:  shell:{"type": "started"}
    Client -> Agent:  shell:{"type": "resize", "columns": 120, "lines": 40}
    Client -> Agent:  shell:{"type": "ping"}
    Agent -> Client:  shell:{"type": "exit", "code": 0}
    Agent -> Client:  shell:{"type": "error", "error": "..."}

Binary messages carry terminal bytes both ways. Keystrokes pass through the
escape interpreter before they are sent; remote output is written as is.
"""

import asyncio
from typing import TYPE_CHECKING

from websockets.exceptions import ConnectionClosed

from mlogin.channel.escape import EscapeCommand, EscapeInterpreter, help_text
from mlogin.channel.models import (
    ErrorMessage,
    ExitMessage,
    LinkupMessage,
    PingMessage,
    ResizeMessage,
    StartedMessage,
    StartMessage,
    WaitMessage,
    decode_frame,
    encode_frame,
)
from mlogin.config import PING_INTERVAL
from mlogin.errors import ProtocolError
from mlogin.logger import get_logger
from mlogin.session.state import Session

if TYPE_CHECKING:
    from mlogin.session.cleanup import CleanupCoordinator
    from mlogin.terminal import LocalTerminal

logger = get_logger(__name__)


class TerminalRelay:
    """
    Relays the local terminal over an established session channel.

    Args:
        session: Shared session state holding the open channel.
        terminal: Local terminal to capture and write to.
        cleanup: Coordinator invoked when the session ends.
        start: Start request sent as soon as the relay runs.
        ping_interval: Seconds between keep-alive frames.
    """

    def __init__(
        self,
        session: Session,
        terminal: "LocalTerminal",
        cleanup: "CleanupCoordinator",
        start: StartMessage,
        ping_interval: float = PING_INTERVAL,
    ):
        self.session = session
        self.terminal = terminal
        self.cleanup = cleanup
        self.start = start
        self.ping_interval = ping_interval
        self.interpreter = EscapeInterpreter(session.escape_char)
        self.started = False
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []

    async def run(self) -> None:
        """Relay until the channel closes or the session is torn down."""
        channel = self.session.channel
        try:
            await channel.send(encode_frame(self.start))
            self._tasks = [
                asyncio.create_task(self._write_loop()),
                asyncio.create_task(self._ping_loop()),
            ]
            async for raw in channel:
                await self.handle_message(raw)
                if not self.session.running:
                    break
        except ConnectionClosed as e:
            if self.session.running:
                logger.error(f"connection to the remote agent was reset: {e}")
            await self.cleanup.cleanup(1)
            return
        finally:
            for task in self._tasks:
                task.cancel()

        if self.session.running:
            logger.error("connection to the remote agent closed unexpectedly")
        await self.cleanup.cleanup(1)

    async def handle_message(self, raw: str | bytes) -> None:
        try:
            frame = decode_frame(raw)
        except ProtocolError as e:
            logger.warning(str(e))
            return

        if isinstance(frame, bytes):
            self.terminal.write(frame)
        elif isinstance(frame, StartedMessage):
            self._begin_input()
        elif isinstance(frame, ErrorMessage):
            logger.error(f"remote error: {frame.error or 'unknown error'}")
            await self.session.channel.close()
            await self.cleanup.cleanup(1)
        elif isinstance(frame, ExitMessage):
            logger.debug(f"Remote shell exited with status {frame.code}")
            # the job finishes on its own once the shell is gone
            self.session.cancel_requested = False
            await self.cleanup.cleanup(frame.code)
        elif isinstance(frame, (LinkupMessage, WaitMessage)):
            logger.debug(f"Ignoring late {frame.type} frame")
        else:
            logger.warning(f"unexpected {frame.type} frame from the remote agent")

    def _begin_input(self) -> None:
        if self.started:
            return
        self.started = True
        self.terminal.enter_raw_mode()
        self.terminal.start_reading(self.on_input)
        self.terminal.on_resize(self.on_resize)
        logger.debug("Remote shell started, relaying input")

    def on_input(self, data: bytes) -> None:
        """Filter local keystrokes and queue them for the agent."""
        if not self.session.running:
            return
        result = self.interpreter.feed(data)
        if result.output:
            self._outbound.put_nowait(result.output)
        for command in result.commands:
            self._run_command(command)

    def on_resize(self, columns: int, lines: int) -> None:
        if not self.session.running:
            return
        self._outbound.put_nowait(
            encode_frame(ResizeMessage(columns=columns, lines=lines))
        )

    def _run_command(self, command: EscapeCommand) -> None:
        if command is EscapeCommand.HELP:
            self.terminal.write_local(help_text(self.session.escape_char))
        elif command is EscapeCommand.INFO:
            self.terminal.write_local("\n".join(self.session.describe()) + "\n")
        elif command is EscapeCommand.TERMINATE:
            logger.debug("Session terminated from the escape menu")
            self.cleanup.trigger(0)

    async def _send(self, data: str | bytes) -> None:
        try:
            await self.session.channel.send(data)
        except ConnectionClosed:
            logger.debug("Channel closed, dropping outbound message")

    async def _write_loop(self) -> None:
        while True:
            data = await self._outbound.get()
            await self._send(data)

    async def _ping_loop(self) -> None:
        while self.session.running:
            await asyncio.sleep(self.ping_interval)
            self._outbound.put_nowait(encode_frame(PingMessage()))
