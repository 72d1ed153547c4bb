"""Command and result value types shared by the session layer."""

from __future__ import annotations

from typing import TypeAlias

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from deltashell.errors import FramingTimeout, SessionClosedError, SessionError, StreamClosedError, WriteError

DEFAULT_SENTINEL = "__DONE__"


class CommandStatus(str, Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    PROCESS_EXITED = "process_exited"
    WRITE_FAILED = "write_failed"
    CANCELLED = "cancelled"


_STATUS_ERRORS: dict[CommandStatus, type[SessionError]] = {
    CommandStatus.TIMED_OUT: FramingTimeout,
    CommandStatus.PROCESS_EXITED: StreamClosedError,
    CommandStatus.WRITE_FAILED: WriteError,
    CommandStatus.CANCELLED: SessionClosedError,
}


@dataclass(frozen=True)
class CommandResult:
    """Outcome delivered exactly once for every submitted command."""

    command: str
    status: CommandStatus
    output: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is CommandStatus.COMPLETED

    @property
    def text(self) -> str:
        """Output for completed commands, otherwise a readable error line."""
        if self.ok:
            return self.output
        message = self.error or self.status.value
        return f"error: {message}"

    def unwrap(self) -> str:
        """Return the output text or raise the error matching the status."""
        if self.ok:
            return self.output
        raise _STATUS_ERRORS[self.status](self.error or self.status.value)

    @classmethod
    def completed(cls, command: str, output: str) -> CommandResult:
        return cls(command=command, status=CommandStatus.COMPLETED, output=output)

    @classmethod
    def failed(cls, command: str, status: CommandStatus, error: str, *, output: str = "") -> CommandResult:
        return cls(command=command, status=status, output=output, error=error)


ResultSink: TypeAlias = Callable[[CommandResult], None]


def _command_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class Command:
    """One queued request: the shell text plus the sink that receives its result."""

    text: str
    sink: ResultSink = field(repr=False)
    timeout: float | None = None
    command_id: str = field(default_factory=_command_id)


def encode_command(text: str, sentinel: str = DEFAULT_SENTINEL) -> bytes:
    """Frame one command for the interpreter: run it, then echo the sentinel."""
    body = text.rstrip().rstrip(";").rstrip()
    return f"{body}; echo {sentinel}\n".encode()
