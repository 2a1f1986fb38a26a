"""
Shared state for one interactive session.

Every component receives the same ``Session`` instance. All mutation happens
on the event loop thread, so the only coordination primitive needed is the
``running`` check-and-set performed by the cleanup coordinator.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Session:
    object_path: str | None = None
    escape_char: int | None = None
    running: bool = True
    cancel_requested: bool = False
    job_id: str | None = None
    config_key: str | None = None
    channel: Any = None
    poll_task: asyncio.Task | None = None
    wait_count: int = 0
    _exit_status: asyncio.Future | None = field(default=None, repr=False)

    @property
    def keyless(self) -> bool:
        """True when the session is not bound to an input object."""
        return self.object_path is None

    @property
    def exit_status(self) -> asyncio.Future:
        """Resolved with the process exit status once teardown completes."""
        if self._exit_status is None:
            self._exit_status = asyncio.get_running_loop().create_future()
        return self._exit_status

    def finish(self, status: int) -> None:
        if not self.exit_status.done():
            self.exit_status.set_result(status)

    def describe(self) -> list[str]:
        """Human-readable summary used by the ``i`` escape command."""
        escape = chr(self.escape_char) if self.escape_char is not None else "none"
        return [
            f"job:           {self.job_id or '(not created)'}",
            f"input object:  {self.object_path or '(none)'}",
            f"config object: {self.config_key or '(not published)'}",
            f"escape char:   {escape}",
            f"wait frames:   {self.wait_count}",
        ]
