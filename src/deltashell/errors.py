"""Application-level exception types for deltashell."""

from __future__ import annotations


class DeltaShellError(Exception):
    """Base exception for deltashell."""


class ConfigurationError(DeltaShellError):
    """Raised when the phase configuration file is missing or malformed."""


class SessionError(DeltaShellError):
    """Base exception for persistent session failures."""


class ProcessSpawnError(SessionError):
    """Raised when the interpreter process cannot be started."""


class WriteError(SessionError):
    """Raised when the interpreter input stream is closed or broken."""


class StreamClosedError(SessionError):
    """Raised when interpreter output ends while a command is outstanding."""


class FramingTimeout(SessionError):
    """Raised when no sentinel is observed within the command time window."""


class SessionClosedError(SessionError):
    """Raised when a command is submitted to, or cancelled by, a closed session."""


class ExecutionError(DeltaShellError):
    """Raised when a one-shot local or scp command cannot be run."""
