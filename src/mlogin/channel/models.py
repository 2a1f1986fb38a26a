"""
Pydantic models for the session channel protocol.

Two kinds of websocket message share the channel:
- binary messages carry raw terminal bytes in both directions
- text messages carry control frames: a layer prefix followed by JSON

The handshake layer (``medusa:``) is spoken by the reflector while the
remote agent is attaching. The session layer (``shell:``) is spoken by the
agent once the shell exists.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from mlogin.errors import ProtocolError

HANDSHAKE_PREFIX = "medusa:"
SESSION_PREFIX = "shell:"


# ─── Handshake layer ─────────────────────────────────────────────────


class LinkupMessage(BaseModel):
    """Reflector → client: the remote agent attached to the channel."""

    type: Literal["linkup"] = "linkup"


class WaitMessage(BaseModel):
    """Reflector → client: still waiting for the remote agent."""

    type: Literal["wait"] = "wait"


# ─── Session layer ───────────────────────────────────────────────────


class StartMessage(BaseModel):
    """Client → agent: start the shell with these terminal settings."""

    type: Literal["start"] = "start"
    cwd: str
    term: str
    columns: int
    lines: int
    command: str
    arguments: list[str] = Field(default_factory=list)


class StartedMessage(BaseModel):
    """Agent → client: the shell is running."""

    type: Literal["started"] = "started"


class ResizeMessage(BaseModel):
    """Client → agent: the local window changed size."""

    type: Literal["resize"] = "resize"
    columns: int
    lines: int


class ExitMessage(BaseModel):
    """Agent → client: the shell exited."""

    type: Literal["exit"] = "exit"
    code: int = 0


class ErrorMessage(BaseModel):
    """Agent → client: fatal condition inside the job."""

    type: Literal["error"] = "error"
    error: str = ""


class PingMessage(BaseModel):
    """Client → agent: keep-alive, no reply expected."""

    type: Literal["ping"] = "ping"


HandshakeMessage = Annotated[
    Union[LinkupMessage, WaitMessage], Field(discriminator="type")
]
SessionMessage = Annotated[
    Union[
        StartMessage,
        StartedMessage,
        ResizeMessage,
        ExitMessage,
        ErrorMessage,
        PingMessage,
    ],
    Field(discriminator="type"),
]
ControlMessage = Union[
    LinkupMessage,
    WaitMessage,
    StartMessage,
    StartedMessage,
    ResizeMessage,
    ExitMessage,
    ErrorMessage,
    PingMessage,
]

_LAYERS: dict[str, TypeAdapter] = {
    HANDSHAKE_PREFIX: TypeAdapter(HandshakeMessage),
    SESSION_PREFIX: TypeAdapter(SessionMessage),
}


def encode_frame(message: BaseModel) -> str:
    """Serialize a control message with its layer prefix."""
    if isinstance(message, (LinkupMessage, WaitMessage)):
        prefix = HANDSHAKE_PREFIX
    else:
        prefix = SESSION_PREFIX
    return prefix + message.model_dump_json()


def decode_frame(raw: str | bytes) -> ControlMessage | bytes:
    """
    Classify one websocket message.

    Args:
        raw: A message as received from the websocket.

    Returns:
        The decoded control message, or the raw terminal bytes when the
        message is not a control frame.

    Raises:
        ProtocolError: If a prefixed frame carries invalid JSON or an
            unknown message type.
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)

    for prefix, adapter in _LAYERS.items():
        if raw.startswith(prefix):
            try:
                return adapter.validate_json(raw[len(prefix) :])
            except ValidationError as e:
                raise ProtocolError(
                    f"malformed {prefix.rstrip(':')} frame: {raw[:80]!r}"
                ) from e

    return raw.encode("utf-8")
