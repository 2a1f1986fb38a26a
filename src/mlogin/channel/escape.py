"""
Escape-sequence interpreter for local keyboard input.

An escape is recognised only when the trigger character is typed right at
the start of a line, so terminal data can never be mistaken for a request.
The character after the trigger selects a command:

    ~.  terminate the session
    ~?  show the escape help
    ~i  show session information
    ~~  send a literal ~

The interpreter keeps one byte of lookback in ``EscapeState`` and produces
the same output whether input arrives at once or split into chunks.
"""

from dataclasses import dataclass, field
from enum import Enum

from mlogin.config import ESCAPE_DISABLED

CR = 0x0D
LF = 0x0A


class EscapeCommand(str, Enum):
    HELP = "help"
    INFO = "info"
    TERMINATE = "terminate"


_COMMANDS = {
    ord("?"): EscapeCommand.HELP,
    ord("i"): EscapeCommand.INFO,
    ord("."): EscapeCommand.TERMINATE,
}


@dataclass(frozen=True)
class EscapeState:
    after_newline: bool = True
    pending_escape: bool = False
    terminated: bool = False


@dataclass
class EscapeResult:
    output: bytes
    state: EscapeState
    commands: list[EscapeCommand] = field(default_factory=list)

    @property
    def terminate(self) -> bool:
        return EscapeCommand.TERMINATE in self.commands


def transform(data: bytes, state: EscapeState, escape_char: int | None) -> EscapeResult:
    """
    Filter a chunk of input through the escape state machine.

    Args:
        data: Bytes read from the local terminal.
        state: State carried over from the previous chunk.
        escape_char: Trigger byte, or None to pass everything through.

    Returns:
        The bytes to forward, the state for the next chunk and any escape
        commands recognised. Processing stops at a terminate command, and a
        terminated state passes nothing through afterwards.
    """
    if state.terminated:
        return EscapeResult(b"", state)
    if escape_char is None:
        return EscapeResult(bytes(data), state)

    out = bytearray()
    commands: list[EscapeCommand] = []
    after_newline = state.after_newline
    pending = state.pending_escape
    terminated = False

    for byte in data:
        if pending:
            pending = False
            command = _COMMANDS.get(byte)
            if byte == escape_char:
                out.append(byte)
                after_newline = False
            elif command is EscapeCommand.TERMINATE:
                commands.append(command)
                terminated = True
                break
            elif command is not None:
                # still at the start of a line
                commands.append(command)
            else:
                after_newline = False
            continue

        if after_newline and byte == escape_char:
            pending = True
            continue

        after_newline = byte in (CR, LF)
        out.append(byte)

    return EscapeResult(
        bytes(out), EscapeState(after_newline, pending, terminated), commands
    )


class EscapeInterpreter:
    """Stateful wrapper around ``transform`` for a single session."""

    def __init__(self, escape_char: int | None):
        self.escape_char = escape_char
        self.state = EscapeState()

    @property
    def terminated(self) -> bool:
        return self.state.terminated

    def feed(self, data: bytes) -> EscapeResult:
        result = transform(data, self.state, self.escape_char)
        self.state = result.state
        return result


def parse_escape_char(value: str) -> int | None:
    """
    Parse the ``--escape-char`` option.

    Accepts a single non-newline character or the keyword ``none``, which
    disables escape processing.

    Raises:
        ValueError: If the value is not a single one-byte character.
    """
    if value.lower() == ESCAPE_DISABLED:
        return None
    encoded = value.encode("utf-8")
    if len(encoded) != 1:
        raise ValueError(
            f"escape character must be a single character or '{ESCAPE_DISABLED}'"
        )
    if encoded[0] in (CR, LF):
        raise ValueError("escape character cannot be a newline")
    return encoded[0]


def help_text(escape_char: int) -> str:
    c = chr(escape_char)
    return (
        "Supported escape sequences:\n"
        f"  {c}.  - terminate session\n"
        f"  {c}?  - this message\n"
        f"  {c}i  - session information\n"
        f"  {c}{c}  - send the escape character by typing it twice\n"
        "(Note that escapes are only recognized immediately after newline.)\n"
    )
