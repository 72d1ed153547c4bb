"""deltashell: run commands across phases over persistent interpreter sessions."""

from deltashell.errors import (
    ConfigurationError,
    DeltaShellError,
    ExecutionError,
    FramingTimeout,
    ProcessSpawnError,
    SessionClosedError,
    SessionError,
    StreamClosedError,
    WriteError,
)
from deltashell.session import SessionState, ShellSession
from deltashell.types import Command, CommandResult, CommandStatus

__all__ = [
    "Command",
    "CommandResult",
    "CommandStatus",
    "ConfigurationError",
    "DeltaShellError",
    "ExecutionError",
    "FramingTimeout",
    "ProcessSpawnError",
    "SessionClosedError",
    "SessionError",
    "SessionState",
    "ShellSession",
    "StreamClosedError",
    "WriteError",
]
__version__ = "0.1.0"
