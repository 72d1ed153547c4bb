"""Persistent interpreter session multiplexing queued commands."""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections.abc import Coroutine, Mapping, Sequence
from contextlib import suppress
from enum import Enum
from pathlib import Path
from typing import Any, Literal, TypeAlias

from loguru import logger

from deltashell.errors import ProcessSpawnError, SessionClosedError, SessionError, WriteError
from deltashell.session.framer import OutputFramer
from deltashell.session.process import InterpreterProcess, SubprocessInterpreter
from deltashell.session.queue import CommandQueue
from deltashell.types import DEFAULT_SENTINEL, Command, CommandResult, CommandStatus, ResultSink, encode_command

TimeoutPolicy: TypeAlias = Literal["abandon", "terminate"]

TIMEOUT_POLICIES: tuple[TimeoutPolicy, ...] = ("abandon", "terminate")


class SessionState(str, Enum):
    NEW = "new"
    IDLE = "idle"
    BUSY = "busy"
    CLOSED = "closed"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ShellSession:
    """One long-lived interpreter executing submitted commands strictly one at a time.

    Each command is written as ``<text>; echo <sentinel>`` and its result is the
    output preceding the echoed sentinel. Queue, in-flight flag and output buffer
    are only touched on the event loop the session was started on; other threads
    reach it through ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        argv: Sequence[str] | None = None,
        *,
        name: str = "session",
        sentinel: str = DEFAULT_SENTINEL,
        command_timeout: float | None = None,
        timeout_policy: TimeoutPolicy = "abandon",
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        process: InterpreterProcess | None = None,
    ) -> None:
        if process is None:
            if not argv:
                raise ValueError("either argv or process is required")
            process = SubprocessInterpreter(argv, cwd=cwd, env=env)
        if timeout_policy not in TIMEOUT_POLICIES:
            raise ValueError(f"unknown timeout policy: {timeout_policy}")
        self.name = name
        self._process = process
        self._framer = OutputFramer(sentinel)
        self._queue = CommandQueue()
        self._command_timeout = command_timeout
        self._timeout_policy = timeout_policy
        self._state = SessionState.NEW
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader: asyncio.Task[None] | None = None
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._abandoned: set[str] = set()
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def sentinel(self) -> str:
        return self._framer.sentinel

    @property
    def pending(self) -> int:
        """Number of commands not yet resolved, including the one in flight."""
        return len(self._queue)

    @property
    def in_flight(self) -> bool:
        return self._queue.in_flight

    async def __aenter__(self) -> ShellSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        if self._state is not SessionState.NEW:
            raise SessionError(f"session {self.name} already started")
        self._loop = asyncio.get_running_loop()
        try:
            await self._process.start()
        except ProcessSpawnError:
            self._state = SessionState.CLOSED
            logger.error("session.spawn_failed name={}", self.name)
            raise
        self._state = SessionState.IDLE
        self._reader = self._loop.create_task(self._read_loop(), name=f"deltashell.reader:{self.name}")
        logger.info("session.start name={}", self.name)

    def submit(self, text: str, on_result: ResultSink, *, timeout: float | None = None) -> Command:
        """Queue one command and return immediately; ``on_result`` fires exactly once."""
        if not text.strip():
            raise ValueError("command text must not be blank")
        try:
            encode_command(text, self.sentinel)
        except UnicodeEncodeError as exc:
            raise ValueError(f"command text cannot be encoded: {exc.reason}") from exc
        loop = self._loop
        if loop is None:
            raise SessionError(f"session {self.name} is not started")
        if self._state is SessionState.CLOSED:
            raise SessionClosedError(f"session {self.name} is closed")
        if not self._process.writable:
            raise WriteError(f"session {self.name} input stream is closed")

        command = Command(
            text=text,
            sink=on_result,
            timeout=timeout if timeout is not None else self._command_timeout,
        )
        if _running_loop() is loop:
            self._enqueue(command)
            return command
        try:
            loop.call_soon_threadsafe(self._enqueue, command)
        except RuntimeError as exc:
            raise SessionClosedError(f"session {self.name} event loop is closed") from exc
        return command

    async def run(self, text: str, *, timeout: float | None = None) -> CommandResult:
        """Submit one command and wait for its result."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[CommandResult] = loop.create_future()

        def _set(result: CommandResult) -> None:
            if not future.done():
                future.set_result(result)

        def _on_result(result: CommandResult) -> None:
            if loop is self._loop:
                _set(result)
            else:
                loop.call_soon_threadsafe(_set, result)

        self.submit(text, _on_result, timeout=timeout)
        return await future

    async def execute(self, text: str, *, timeout: float | None = None) -> str:
        """Run one command and return its output, raising on any failure status."""
        result = await self.run(text, timeout=timeout)
        return result.unwrap()

    async def close(self) -> None:
        """Stop reading, cancel queued commands and terminate the interpreter."""
        if self._state is SessionState.NEW:
            self._state = SessionState.CLOSED
            return
        was_open = self._state is not SessionState.CLOSED
        self._shutdown(CommandStatus.CANCELLED, f"session {self.name} closed")

        reader = self._reader
        if reader is not None and not reader.done():
            reader.cancel()
            with suppress(asyncio.CancelledError):
                await reader
        await self._process.terminate()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if was_open:
            logger.info("session.closed name={}", self.name)

    def request_close(self) -> concurrent.futures.Future[None]:
        """Close from another thread. Do not block on the result from the loop thread."""
        if self._loop is None:
            raise SessionError(f"session {self.name} is not started")
        return asyncio.run_coroutine_threadsafe(self.close(), self._loop)

    def _enqueue(self, command: Command) -> None:
        if self._state is SessionState.CLOSED:
            reason = f"session {self.name} is closed"
            self._deliver(command, CommandResult.failed(command.text, CommandStatus.CANCELLED, reason))
            return
        self._queue.append(command)
        if command.timeout is not None:
            loop = asyncio.get_running_loop()
            self._timers[command.command_id] = loop.call_later(command.timeout, self._expire, command)
        logger.debug("session.enqueue name={} id={} pending={}", self.name, command.command_id, len(self._queue))
        self._pump()

    def _pump(self) -> None:
        # Writes the next head before returning so queued commands never wait on a yield.
        while self._state is not SessionState.CLOSED:
            command = self._queue.begin()
            if command is None:
                if not self._queue.in_flight:
                    self._state = SessionState.IDLE
                return
            self._state = SessionState.BUSY
            try:
                self._process.write(encode_command(command.text, self.sentinel))
            except WriteError as exc:
                logger.warning("session.write_failed name={} id={} error={}", self.name, command.command_id, exc)
                self._queue.finish()
                self._settle(command, CommandResult.failed(command.text, CommandStatus.WRITE_FAILED, str(exc)))
                continue
            logger.debug("session.write name={} id={}", self.name, command.command_id)
            self._spawn(self._drain(command))
            return

    async def _drain(self, command: Command) -> None:
        try:
            await self._process.drain()
        except WriteError as exc:
            if not (self._queue.in_flight and self._queue.head is command):
                return
            logger.warning("session.drain_failed name={} id={} error={}", self.name, command.command_id, exc)
            self._queue.finish()
            self._settle(command, CommandResult.failed(command.text, CommandStatus.WRITE_FAILED, str(exc)))
            self._pump()

    async def _read_loop(self) -> None:
        try:
            while True:
                chunk = await self._process.read_chunk()
                if not chunk:
                    break
                for frame in self._framer.feed(chunk):
                    self._on_frame(frame)
        except Exception:
            logger.exception("session.read_failed name={}", self.name)
        self._on_stream_closed()

    def _on_frame(self, frame: str) -> None:
        if not self._queue.in_flight:
            logger.warning("session.frame.orphan name={} size={}", self.name, len(frame))
            return
        command = self._queue.finish()
        logger.debug("session.frame name={} id={} size={}", self.name, command.command_id, len(frame))
        self._settle(command, CommandResult.completed(command.text, frame))
        self._pump()

    def _on_stream_closed(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        partial = self._framer.flush()
        logger.warning("session.stream_closed name={} pending={}", self.name, len(self._queue))
        self._shutdown(CommandStatus.PROCESS_EXITED, f"interpreter for {self.name} exited", partial=partial)

    def _expire(self, command: Command) -> None:
        self._timers.pop(command.command_id, None)
        message = f"no sentinel within {command.timeout}s"
        if self._queue.in_flight and self._queue.head is command:
            logger.warning(
                "session.timeout name={} id={} policy={}", self.name, command.command_id, self._timeout_policy
            )
            partial = self._framer.pending.strip()
            self._deliver(command, CommandResult.failed(command.text, CommandStatus.TIMED_OUT, message, output=partial))
            if self._timeout_policy == "terminate":
                self._queue.finish()
                self._shutdown(CommandStatus.CANCELLED, f"session {self.name} terminated after timeout")
            else:
                # The frame still arrives eventually; it is dropped and the queue resumes.
                self._abandoned.add(command.command_id)
            return
        if self._queue.remove(command):
            logger.warning("session.timeout.queued name={} id={}", self.name, command.command_id)
            self._deliver(command, CommandResult.failed(command.text, CommandStatus.TIMED_OUT, message))

    def _shutdown(self, status: CommandStatus, reason: str, *, partial: str = "") -> None:
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        in_flight = self._queue.in_flight
        for index, command in enumerate(self._queue.drain()):
            output = partial if index == 0 and in_flight else ""
            self._settle(command, CommandResult.failed(command.text, status, reason, output=output))
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
        self._spawn(self._process.terminate())

    def _settle(self, command: Command, result: CommandResult) -> None:
        timer = self._timers.pop(command.command_id, None)
        if timer is not None:
            timer.cancel()
        if command.command_id in self._abandoned:
            self._abandoned.discard(command.command_id)
            logger.info("session.frame.discarded name={} id={}", self.name, command.command_id)
            return
        self._deliver(command, result)

    def _deliver(self, command: Command, result: CommandResult) -> None:
        try:
            command.sink(result)
        except Exception:
            logger.exception("session.sink_failed name={} id={}", self.name, command.command_id)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
