"""
Session orchestrator: the ordered setup pipeline and the session lifetime.

Setup runs as a list of named steps, each awaited before the next begins:

    validate -> create job -> start poller -> connect channel
             -> publish config -> attach input -> close input

A failing step aborts the rest and tears the session down with status 1.
After setup the orchestrator waits for the cleanup coordinator to resolve
the session's exit status, whichever trigger fires first.
"""

import asyncio
import shlex
import signal
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from mlogin.channel.connector import ChannelConnector
from mlogin.channel.models import StartMessage
from mlogin.channel.relay import TerminalRelay
from mlogin.config import (
    DEFAULT_COMMAND,
    DEFAULT_CWD,
    LINKUP_TIMEOUT,
    PING_INTERVAL,
    POLL_INTERVAL,
)
from mlogin.errors import ObjectNotFoundError, SetupError
from mlogin.logger import get_logger
from mlogin.session.cleanup import CleanupCoordinator
from mlogin.session.jobs import JobLifecycleManager, JobOptions
from mlogin.session.poller import CompletionPoller
from mlogin.session.publisher import ConfigPublisher
from mlogin.session.state import Session
from mlogin.store.base import StoreClient
from mlogin.terminal import LocalTerminal, Progress

logger = get_logger(__name__)

Step = tuple[str, Callable[[], Awaitable[None]]]


@dataclass
class SessionOptions:
    """Everything the operator chose for one session."""

    object_path: str | None = None
    escape_char: int | None = ord("~")
    command: str = DEFAULT_COMMAND
    arguments: list[str] = field(default_factory=list)
    cwd: str = DEFAULT_CWD
    quiet: bool = False
    insecure: bool = False
    job: JobOptions = field(default_factory=JobOptions)
    poll_interval: float = POLL_INTERVAL
    ping_interval: float = PING_INTERVAL
    linkup_timeout: float = LINKUP_TIMEOUT
    handle_signals: bool = True

    def command_line(self) -> tuple[str, list[str]]:
        """Split ``command`` into the program and its arguments."""
        parts = shlex.split(self.command) or [DEFAULT_COMMAND]
        return parts[0], parts[1:] + list(self.arguments)


class SessionOrchestrator:
    """
    Runs one interactive session from setup to teardown.

    Args:
        client: Store client for every remote operation.
        options: Session options.
        terminal: Local terminal; defaults to the process's stdin/stdout.
    """

    def __init__(
        self,
        client: StoreClient,
        options: SessionOptions,
        terminal: LocalTerminal | None = None,
    ):
        self.client = client
        self.options = options
        self.terminal = terminal or LocalTerminal()
        self.session = Session(
            object_path=options.object_path, escape_char=options.escape_char
        )
        self.jobs = JobLifecycleManager(self.session, client)
        self.publisher = ConfigPublisher(self.session, client, insecure=options.insecure)
        self.cleanup = CleanupCoordinator(self.session, self.jobs, client)
        self.poller = CompletionPoller(
            self.session,
            client,
            on_complete=self.cleanup.trigger,
            interval=options.poll_interval,
        )
        self.progress = Progress(enabled=not options.quiet)
        self.connector = ChannelConnector(
            self.session,
            client,
            progress=self.progress,
            linkup_timeout=options.linkup_timeout,
        )
        self._tasks: list[asyncio.Task] = []
        self._signals_installed = False

    def steps(self) -> list[Step]:
        return [
            ("validate", self._validate),
            ("create job", self._create_job),
            ("start poller", self._start_poller),
            ("connect channel", self._connect_channel),
            ("publish config", self._publish_config),
            ("attach input", self._attach_input),
            ("close input", self._close_input),
        ]

    async def run(self) -> int:
        """Run the session and return the process exit status."""
        self._install_signal_handlers()
        try:
            await self._run_pipeline()
            return await self.session.exit_status
        finally:
            await self._shutdown()

    async def _run_pipeline(self) -> None:
        for name, step in self.steps():
            if not self.session.running:
                logger.debug(f"Setup stopped before '{name}'")
                return

            logger.debug(f"Setup: {name}")
            task = asyncio.ensure_future(step())
            self.cleanup.track_setup(task)
            try:
                await task
            except Exception as e:
                logger.error(f"{name} failed: {e}")
                logger.opt(exception=e).debug("Setup failure detail")
                await self.cleanup.cleanup(1)
                return
            finally:
                self.cleanup.track_setup(None)

    # ─── Pipeline steps ──────────────────────────────────────────────

    async def _validate(self) -> None:
        path = self.options.object_path
        if path is None:
            return
        try:
            info = await self.client.info(path)
        except ObjectNotFoundError:
            raise SetupError(f"{path} does not exist") from None
        if info.type != "object":
            raise SetupError(f"{path} is not an object")

    async def _create_job(self) -> None:
        await self.jobs.create(self.publisher.key, self.options.job)

    async def _start_poller(self) -> None:
        self.poller.start()

    async def _connect_channel(self) -> None:
        await self.connector.open()
        self._spawn(self._converse(), "session channel")

    async def _publish_config(self) -> None:
        await self.publisher.publish()

    async def _attach_input(self) -> None:
        await self.jobs.attach_input(self.session.job_id, self.options.object_path)

    async def _close_input(self) -> None:
        await self.jobs.close_input(self.session.job_id)

    # ─── Session lifetime ────────────────────────────────────────────

    def build_start_message(self) -> StartMessage:
        command, arguments = self.options.command_line()
        columns, lines = self.terminal.size()
        return StartMessage(
            cwd=self.options.cwd,
            term=self.terminal.term(),
            columns=columns,
            lines=lines,
            command=command,
            arguments=arguments,
        )

    async def _converse(self) -> None:
        relay = TerminalRelay(
            self.session,
            self.terminal,
            self.cleanup,
            start=self.build_start_message(),
            ping_interval=self.options.ping_interval,
        )
        await self.connector.run(relay)

    def _spawn(self, coro: Awaitable[None], name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.add_done_callback(lambda t: self._on_task_done(t, name))
        self._tasks.append(task)
        return task

    def _on_task_done(self, task: asyncio.Task, name: str) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if self.session.running:
            logger.error(f"{exc}")
            logger.opt(exception=exc).debug(f"{name} failed")
        self.cleanup.trigger(1)

    def _on_interrupt(self) -> None:
        logger.warning("interrupted, cleaning up")
        self.cleanup.trigger(1)

    def _install_signal_handlers(self) -> None:
        if not self.options.handle_signals:
            return
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, self._on_interrupt)
        self._signals_installed = True

    async def _shutdown(self) -> None:
        pending = [t for t in self._tasks if not t.done()]
        if self.session.poll_task is not None and not self.session.poll_task.done():
            pending.append(self.session.poll_task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if self.session.channel is not None:
            await self.session.channel.close()
        self.progress.finish()
        self.terminal.restore()

        if self._signals_installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            self._signals_installed = False
