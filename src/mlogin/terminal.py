"""
Local terminal handling: raw mode, stdin capture, window size and the
progress indicator shown while the remote agent attaches.
"""

import asyncio
import os
import shutil
import signal
import sys
import termios
import tty
from typing import Callable

import typer

from mlogin.config import DEFAULT_TERM
from mlogin.logger import get_logger

logger = get_logger(__name__)

READ_SIZE = 4096


class LocalTerminal:
    """The operator's terminal, driven from the asyncio event loop."""

    def __init__(self, stdin=None, stdout=None):
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._saved_attrs: list | None = None
        self._reader_fd: int | None = None
        self._resize_installed = False

    def isatty(self) -> bool:
        try:
            return self._stdin.isatty()
        except (AttributeError, ValueError):
            return False

    def size(self) -> tuple[int, int]:
        """Return ``(columns, lines)`` of the local window."""
        size = shutil.get_terminal_size(fallback=(80, 24))
        return size.columns, size.lines

    def term(self) -> str:
        return os.environ.get("TERM") or DEFAULT_TERM

    def enter_raw_mode(self) -> None:
        if self._saved_attrs is not None or not self.isatty():
            return
        fd = self._stdin.fileno()
        self._saved_attrs = termios.tcgetattr(fd)
        tty.setraw(fd)
        logger.debug("Local terminal in raw mode")

    def start_reading(self, callback: Callable[[bytes], None]) -> None:
        """Deliver stdin chunks to ``callback`` until EOF."""
        loop = asyncio.get_running_loop()
        fd = self._stdin.fileno()
        self._reader_fd = fd
        loop.add_reader(fd, self._on_readable, fd, callback)

    def _on_readable(self, fd: int, callback: Callable[[bytes], None]) -> None:
        try:
            data = os.read(fd, READ_SIZE)
        except BlockingIOError:
            return
        if not data:
            logger.debug("EOF on local input")
            self._stop_reading()
            return
        callback(data)

    def _stop_reading(self) -> None:
        if self._reader_fd is None:
            return
        asyncio.get_running_loop().remove_reader(self._reader_fd)
        self._reader_fd = None

    def on_resize(self, callback: Callable[[int, int], None]) -> None:
        """Call ``callback(columns, lines)`` whenever the window changes size."""
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGWINCH, lambda: callback(*self.size()))
        self._resize_installed = True

    def write(self, data: bytes) -> None:
        self._stdout.buffer.write(data)
        self._stdout.flush()

    def write_local(self, text: str) -> None:
        """Write a locally generated message, safe to use in raw mode."""
        self.write(text.replace("\n", "\r\n").encode("utf-8"))

    def restore(self) -> None:
        """Undo raw mode and detach every loop hook."""
        self._stop_reading()
        if self._resize_installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGWINCH)
            self._resize_installed = False
        if self._saved_attrs is not None:
            termios.tcsetattr(self._stdin.fileno(), termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
            logger.debug("Local terminal restored")


class Progress:
    """Spinner on stderr advanced by each ``wait`` frame."""

    _FRAMES = "|/-\\"

    def __init__(self, label: str = "waiting for the job to start", enabled: bool = True):
        self.label = label
        self.enabled = enabled
        self._count = 0

    def advance(self) -> None:
        if not self.enabled:
            return
        frame = self._FRAMES[self._count % len(self._FRAMES)]
        self._count += 1
        typer.echo(f"\r{self.label} {frame}", err=True, nl=False)

    def finish(self) -> None:
        if not self.enabled or self._count == 0:
            return
        typer.echo("\r" + " " * (len(self.label) + 2) + "\r", err=True, nl=False)
        self._count = 0
