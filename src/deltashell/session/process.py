"""Long-running interpreter child process with merged output."""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Mapping, Sequence
from contextlib import suppress
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from deltashell.errors import ProcessSpawnError, WriteError

READ_CHUNK_SIZE = 4096
TERMINATE_GRACE_SECONDS = 2.0


@runtime_checkable
class InterpreterProcess(Protocol):
    """Byte-level duplex channel to one interactive interpreter."""

    @property
    def writable(self) -> bool: ...

    async def start(self) -> None: ...

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    async def read_chunk(self) -> bytes: ...

    async def terminate(self) -> None: ...


class SubprocessInterpreter:
    """Interpreter handle backed by an asyncio subprocess.

    stdout and stderr are merged into one stream. The child becomes the leader
    of a new process group so termination also reaches its descendants.
    """

    def __init__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        read_size: int = READ_CHUNK_SIZE,
        terminate_grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ) -> None:
        if not argv:
            raise ValueError("argv must not be empty")
        self.argv = list(argv)
        self._cwd = cwd
        self._env = env
        self._read_size = read_size
        self._grace = terminate_grace_seconds
        self._proc: asyncio.subprocess.Process | None = None
        self._terminated = False

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    @property
    def writable(self) -> bool:
        if self._proc is None or self._proc.stdin is None or self._terminated:
            return False
        return not self._proc.stdin.is_closing()

    async def start(self) -> None:
        if self._proc is not None:
            raise ProcessSpawnError(f"interpreter already started: {self.argv[0]}")
        env = None
        if self._env is not None:
            env = dict(os.environ)
            env.update({str(k): str(v) for k, v in self._env.items()})
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(self._cwd) if self._cwd is not None else None,
                env=env,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            raise ProcessSpawnError(f"failed to start {self.argv[0]}: {exc!s}") from exc
        logger.debug("interpreter.spawned argv={} pid={}", self.argv, self._proc.pid)

    def write(self, data: bytes) -> None:
        stdin = self._proc.stdin if self._proc is not None else None
        if stdin is None or stdin.is_closing() or self._terminated:
            raise WriteError("interpreter input stream is closed")
        try:
            stdin.write(data)
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as exc:
            raise WriteError(f"write to interpreter failed: {exc!s}") from exc

    async def drain(self) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise WriteError("interpreter is not running")
        try:
            await self._proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise WriteError(f"write to interpreter failed: {exc!s}") from exc

    async def read_chunk(self) -> bytes:
        if self._proc is None or self._proc.stdout is None:
            return b""
        return await self._proc.stdout.read(self._read_size)

    async def terminate(self) -> None:
        if self._proc is None or self._terminated:
            return
        self._terminated = True
        proc = self._proc
        if proc.stdin is not None:
            with suppress(Exception):
                proc.stdin.close()
        if proc.returncode is None:
            self._signal(proc, signal.SIGTERM)
            try:
                await asyncio.wait_for(proc.wait(), timeout=self._grace)
            except TimeoutError:
                logger.warning("interpreter.kill pid={} grace={}s", proc.pid, self._grace)
                self._signal(proc, signal.SIGKILL)
                with suppress(Exception):
                    await proc.wait()
        logger.debug("interpreter.terminated pid={} returncode={}", proc.pid, proc.returncode)

    def _signal(self, proc: asyncio.subprocess.Process, signum: int) -> None:
        try:
            os.killpg(proc.pid, signum)
        except ProcessLookupError:
            return
        except OSError:
            with suppress(ProcessLookupError):
                proc.send_signal(signum)
