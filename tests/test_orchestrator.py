"""
Integration tests for the session orchestrator, driven end to end against a
mocked store client and a scripted channel.
"""

import asyncio

import pytest

from mlogin.channel.models import (
    ErrorMessage,
    ExitMessage,
    LinkupMessage,
    StartedMessage,
    StartMessage,
    WaitMessage,
    decode_frame,
    encode_frame,
)
from mlogin.errors import ObjectNotFoundError, StoreError
from mlogin.session.jobs import JobOptions
from mlogin.session.orchestrator import SessionOptions, SessionOrchestrator
from mlogin.store.models import Job, JobState, ObjectInfo

from conftest import FakeChannel

WAIT = encode_frame(WaitMessage())
LINKUP = encode_frame(LinkupMessage())
STARTED = encode_frame(StartedMessage())


class GatedChannel(FakeChannel):
    """Holds its frames back until the config object has been uploaded."""

    def __init__(self, frames=(), hold_open=False, **kwargs):
        super().__init__(frames, **kwargs)
        self.published = asyncio.Event()
        self.hold_open = hold_open

    async def _iterate(self):
        yield WAIT
        await self.published.wait()
        for frame in self.frames:
            yield frame
        if self.hold_open:
            await asyncio.Event().wait()


def make_orchestrator(client, terminal, channel=None, gate="put_object", **kwargs):
    kwargs.setdefault("quiet", True)
    kwargs.setdefault("handle_signals", False)
    kwargs.setdefault("poll_interval", 10)
    kwargs.setdefault("ping_interval", 10)
    options = SessionOptions(**kwargs)
    if channel is not None:
        client.open_channel.return_value = channel
        if gate is not None and isinstance(channel, GatedChannel):
            getattr(client, gate).side_effect = lambda *a, **kw: channel.published.set()
    return SessionOrchestrator(client, options, terminal=terminal)


class TestSuccessPath:
    """Test sessions that end normally."""

    @pytest.mark.asyncio
    async def test_remote_exit(self, client, terminal):
        client.info.return_value = ObjectInfo(path="/jill/stor/data.csv")
        channel = GatedChannel([LINKUP, STARTED, b"$ ", encode_frame(ExitMessage())])
        orch = make_orchestrator(
            client,
            terminal,
            channel,
            gate="end_job_input",
            object_path="/jill/stor/data.csv",
        )

        status = await orch.run()

        assert status == 0
        job_spec = client.create_job.await_args[0][0]
        assert job_spec.phases[0].type == "map"
        assert orch.publisher.key in job_spec.phases[0].assets
        client.put_object.assert_awaited_once()
        client.add_job_inputs.assert_awaited_once_with("job-123", ["/jill/stor/data.csv"])
        client.end_job_input.assert_awaited_once_with("job-123")
        client.cancel_job.assert_not_awaited()
        client.delete_object.assert_awaited_once_with(orch.publisher.key)
        terminal.write.assert_called_once_with(b"$ ")
        terminal.restore.assert_called_once()
        assert channel.closed
        assert orch.session.wait_count == 1

    @pytest.mark.asyncio
    async def test_start_request_describes_terminal(self, client, terminal):
        channel = GatedChannel([LINKUP, encode_frame(ExitMessage())])
        orch = make_orchestrator(
            client, terminal, channel, command="/bin/zsh -l", cwd="/tmp"
        )

        await orch.run()

        start = decode_frame(channel.sent[0])
        assert isinstance(start, StartMessage)
        assert start.command == "/bin/zsh"
        assert start.arguments == ["-l"]
        assert start.cwd == "/tmp"
        assert start.term == "xterm-256color"
        assert (start.columns, start.lines) == (80, 24)

    @pytest.mark.asyncio
    async def test_keyless_session(self, client, terminal):
        channel = GatedChannel([LINKUP, encode_frame(ExitMessage())])
        orch = make_orchestrator(
            client, terminal, channel, job=JobOptions(memory=2048, image="base-64")
        )

        assert await orch.run() == 0

        client.info.assert_not_awaited()
        phase = client.create_job.await_args[0][0].phases[0]
        assert phase.type == "reduce"
        assert phase.memory == 2048
        assert phase.image == "base-64"
        client.add_job_inputs.assert_not_awaited()
        client.end_job_input.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_job_completion_ends_session(self, client, terminal):
        client.get_job.return_value = Job(id="job-123", state=JobState.DONE)
        channel = GatedChannel([LINKUP, STARTED], hold_open=True)
        orch = make_orchestrator(client, terminal, channel, poll_interval=0.01)

        assert await orch.run() == 0

        client.delete_object.assert_awaited_once()


class TestFailures:
    """Test setup and channel failures."""

    @pytest.mark.asyncio
    async def test_missing_object(self, client, terminal):
        client.info.side_effect = ObjectNotFoundError("/jill/stor/nope")
        orch = make_orchestrator(client, terminal, object_path="/jill/stor/nope")

        assert await orch.run() == 1

        client.create_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_directory_rejected(self, client, terminal):
        client.info.return_value = ObjectInfo(path="/jill/stor", type="directory")
        orch = make_orchestrator(client, terminal, object_path="/jill/stor")

        assert await orch.run() == 1

        client.create_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_failure_releases_nothing(self, client, terminal):
        client.create_job.side_effect = StoreError("quota exceeded", status_code=403)
        orch = make_orchestrator(client, terminal)

        assert await orch.run() == 1

        client.cancel_job.assert_not_awaited()
        client.delete_object.assert_not_awaited()
        client.open_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_failure_cancels_job(self, client, terminal):
        client.put_object.side_effect = StoreError("disk full", status_code=507)
        channel = GatedChannel()
        orch = make_orchestrator(client, terminal, channel, gate=None)

        assert await orch.run() == 1

        client.cancel_job.assert_awaited_once_with("job-123")
        client.delete_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remote_error(self, client, terminal):
        channel = GatedChannel([LINKUP, encode_frame(ErrorMessage(error="no such image"))])
        orch = make_orchestrator(client, terminal, channel)

        assert await orch.run() == 1

        assert channel.closed
        client.cancel_job.assert_awaited_once_with("job-123")
        client.delete_object.assert_awaited_once_with(orch.publisher.key)

    @pytest.mark.asyncio
    async def test_channel_closed_before_linkup(self, client, terminal):
        channel = GatedChannel([WAIT])
        orch = make_orchestrator(client, terminal, channel)

        assert await orch.run() == 1

        client.cancel_job.assert_awaited_once_with("job-123")
        terminal.enter_raw_mode.assert_not_called()


class TestInterrupt:
    """Test interrupts at different stages."""

    @pytest.mark.asyncio
    async def test_interrupt_before_setup(self, client, terminal):
        orch = make_orchestrator(client, terminal)
        orch._on_interrupt()

        assert await orch.run() == 1

        client.create_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_interrupt_during_job_creation_still_cancels(self, client, terminal):
        orch = make_orchestrator(client, terminal)

        async def create_then_interrupt(spec):
            orch._on_interrupt()
            await asyncio.sleep(0)
            return "job-123"

        client.create_job.side_effect = create_then_interrupt

        assert await orch.run() == 1

        client.cancel_job.assert_awaited_once_with("job-123")
        client.open_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repeated_interrupts_tear_down_once(self, client, terminal):
        channel = GatedChannel([LINKUP, STARTED], hold_open=True)
        orch = make_orchestrator(client, terminal, channel)

        async def interrupt_after_upload(*args, **kwargs):
            channel.published.set()
            for _ in range(3):
                orch._on_interrupt()

        client.put_object.side_effect = interrupt_after_upload

        assert await orch.run() == 1

        client.cancel_job.assert_awaited_once_with("job-123")
        client.delete_object.assert_awaited_once_with(orch.publisher.key)
