"""Persistent interpreter sessions."""

from .framer import OutputFramer
from .process import InterpreterProcess, SubprocessInterpreter
from .queue import CommandQueue
from .shell import SessionState, ShellSession, TimeoutPolicy

__all__ = [
    "CommandQueue",
    "InterpreterProcess",
    "OutputFramer",
    "SessionState",
    "ShellSession",
    "SubprocessInterpreter",
    "TimeoutPolicy",
]
