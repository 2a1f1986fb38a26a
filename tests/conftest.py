"""Shared pytest fixtures for mlogin tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from mlogin.session.state import Session
from mlogin.store.base import StoreClient


class FakeChannel:
    """In-memory stand-in for a websocket connection.

    Yields the scripted ``frames`` to ``async for`` and then either ends
    (clean close) or raises ``close_error`` (reset).
    """

    def __init__(self, frames=(), close_error: Exception | None = None):
        self.frames = list(frames)
        self.close_error = close_error
        self.sent: list = []
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        if self.close_error is not None:
            raise self.close_error

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True


@pytest.fixture
def client():
    """A store client whose every call succeeds."""
    mock = AsyncMock(spec=StoreClient)
    mock.user = "jill"
    mock.create_job.return_value = "job-123"
    mock.sign_url.return_value = "https://store.example.com/jill/medusa/attach/job-123/storage?signed"
    return mock


@pytest.fixture
def session():
    return Session(escape_char=ord("~"))


@pytest.fixture
def terminal():
    mock = MagicMock()
    mock.size.return_value = (80, 24)
    mock.term.return_value = "xterm-256color"
    return mock
