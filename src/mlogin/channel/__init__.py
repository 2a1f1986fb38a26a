"""
Session channel for mlogin.

The channel is a websocket between the local terminal and the agent running
inside the job. It carries raw terminal bytes and prefixed JSON control
frames side by side.
"""

from mlogin.channel.connector import ChannelConnector, ChannelState
from mlogin.channel.escape import (
    EscapeCommand,
    EscapeInterpreter,
    EscapeState,
    parse_escape_char,
    transform,
)
from mlogin.channel.models import decode_frame, encode_frame
from mlogin.channel.relay import TerminalRelay

__all__ = [
    "ChannelConnector",
    "ChannelState",
    "EscapeCommand",
    "EscapeInterpreter",
    "EscapeState",
    "parse_escape_char",
    "transform",
    "decode_frame",
    "encode_frame",
    "TerminalRelay",
]
