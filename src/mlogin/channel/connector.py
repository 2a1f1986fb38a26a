"""
Channel connector: opens the session websocket and runs the handshake.

Protocol (handshake layer, before the shell exists):

    Reflector -> Client:  medusa:{"type": "wait"}     (agent not attached yet)
    Reflector -> Client:  medusa:{"type": "linkup"}   (agent attached)

Once ``linkup`` arrives the channel is established and control passes to the
terminal relay. Handshake frames are not acted on after that point.
"""

import asyncio
from enum import Enum
from typing import Any

from websockets.exceptions import ConnectionClosed

from mlogin.channel.models import (
    ControlMessage,
    LinkupMessage,
    WaitMessage,
    decode_frame,
)
from mlogin.channel.relay import TerminalRelay
from mlogin.config import LINKUP_TIMEOUT
from mlogin.errors import ChannelSetupError, ProtocolError, StoreError
from mlogin.logger import get_logger
from mlogin.session.state import Session
from mlogin.store.base import StoreClient
from mlogin.terminal import Progress

logger = get_logger(__name__)


class ChannelState(str, Enum):
    CONNECTING = "connecting"
    ESTABLISHED = "established"
    CLOSED = "closed"


class ChannelConnector:
    """
    Connects the local session to the remote agent.

    Args:
        session: Shared session state; receives the open channel.
        client: Store client that signs and opens the websocket.
        progress: Indicator advanced on every ``wait`` frame.
        linkup_timeout: Seconds to wait for the agent to attach.
    """

    def __init__(
        self,
        session: Session,
        client: StoreClient,
        progress: Progress | None = None,
        linkup_timeout: float = LINKUP_TIMEOUT,
    ):
        self.session = session
        self.client = client
        self.progress = progress or Progress(enabled=False)
        self.linkup_timeout = linkup_timeout
        self.state = ChannelState.CONNECTING
        self._relay_started = False

    def reflector_path(self) -> str:
        return f"/{self.client.user}/medusa/reflector/{self.session.job_id}"

    async def open(self) -> Any:
        """Open the websocket and store it on the session."""
        try:
            channel = await self.client.open_channel(self.reflector_path())
        except StoreError as e:
            self.state = ChannelState.CLOSED
            raise ChannelSetupError(f"could not open the session channel: {e}") from e
        self.session.channel = channel
        logger.debug("Session channel open, waiting for the remote agent")
        return channel

    def handle_frame(self, frame: ControlMessage | bytes) -> bool:
        """
        Apply one handshake frame.

        Returns:
            True exactly once, when ``linkup`` establishes the channel.
        """
        if self.state is not ChannelState.CONNECTING:
            logger.debug(f"Ignoring handshake frame in state {self.state.value}")
            return False

        if isinstance(frame, WaitMessage):
            self.session.wait_count += 1
            self.progress.advance()
            return False

        if isinstance(frame, LinkupMessage):
            self.state = ChannelState.ESTABLISHED
            self.progress.finish()
            logger.info("Remote agent attached")
            return True

        logger.debug(f"Ignoring {type(frame).__name__} before linkup")
        return False

    async def _await_linkup(self) -> None:
        async for raw in self.session.channel:
            try:
                frame = decode_frame(raw)
            except ProtocolError as e:
                logger.warning(str(e))
                continue
            if self.handle_frame(frame):
                return
        raise ChannelSetupError("channel closed before the remote agent attached")

    async def handshake(self) -> None:
        """
        Wait for ``linkup``.

        Raises:
            ChannelSetupError: If the channel closes, resets or the agent
                does not attach within ``linkup_timeout``.
        """
        try:
            await asyncio.wait_for(self._await_linkup(), timeout=self.linkup_timeout)
        except asyncio.TimeoutError:
            self.state = ChannelState.CLOSED
            self.progress.finish()
            raise ChannelSetupError(
                f"remote agent did not attach within {self.linkup_timeout:.0f}s"
            ) from None
        except ConnectionClosed as e:
            self.state = ChannelState.CLOSED
            self.progress.finish()
            raise ChannelSetupError(
                f"channel reset before the remote agent attached: {e}"
            ) from e
        except ChannelSetupError:
            self.state = ChannelState.CLOSED
            self.progress.finish()
            raise

    async def run(self, relay: TerminalRelay) -> None:
        """Complete the handshake, then hand the channel to ``relay``."""
        if self._relay_started:
            return
        await self.handshake()
        self._relay_started = True
        await relay.run()
