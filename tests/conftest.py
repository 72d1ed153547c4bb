from __future__ import annotations

from typing import TypeAlias

import asyncio
from collections.abc import Callable

import pytest

from deltashell.errors import ProcessSpawnError, WriteError
from deltashell.types import DEFAULT_SENTINEL

Responder: TypeAlias = Callable[[str], str | None]


class FakeInterpreter:
    """Scripted in-memory interpreter.

    ``writes`` records every framed command. Output is pushed with ``emit``;
    an optional ``responder`` answers each written command body automatically.
    """

    def __init__(self, responder: Responder | None = None, *, sentinel: str = DEFAULT_SENTINEL) -> None:
        self.responder = responder
        self.sentinel = sentinel
        self.writes: list[bytes] = []
        self.fail_start = False
        self.fail_writes = 0
        self.fail_drains = 0
        self.writable_flag = True
        self.started = False
        self.terminated = False
        self.terminate_calls = 0
        self.max_outstanding = 0
        self._chunks: asyncio.Queue[bytes] = asyncio.Queue()
        self._read_text = ""

    @property
    def writable(self) -> bool:
        return self.started and self.writable_flag and not self.terminated

    @property
    def outstanding(self) -> int:
        return len(self.writes) - self._read_text.count(self.sentinel)

    @property
    def bodies(self) -> list[str]:
        suffix = f"; echo {self.sentinel}\n"
        return [item.decode().removesuffix(suffix) for item in self.writes]

    async def start(self) -> None:
        if self.fail_start:
            raise ProcessSpawnError("failed to start fake")
        self.started = True

    def write(self, data: bytes) -> None:
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise WriteError("broken pipe")
        if self.terminated:
            raise WriteError("interpreter input stream is closed")
        self.writes.append(data)
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        if self.responder is not None:
            body = data.decode().removesuffix(f"; echo {self.sentinel}\n")
            output = self.responder(body)
            if output is not None:
                self.emit(f"{output}\n{self.sentinel}\n")

    async def drain(self) -> None:
        if self.fail_drains > 0:
            self.fail_drains -= 1
            raise WriteError("connection reset while flushing")

    async def read_chunk(self) -> bytes:
        chunk = await self._chunks.get()
        if not chunk:
            self._chunks.put_nowait(b"")
            return b""
        self._read_text += chunk.decode(errors="replace")
        return chunk

    async def terminate(self) -> None:
        self.terminate_calls += 1
        self.terminated = True
        self._chunks.put_nowait(b"")

    def emit(self, data: bytes | str) -> None:
        self._chunks.put_nowait(data.encode() if isinstance(data, str) else data)

    def exit(self) -> None:
        self._chunks.put_nowait(b"")


def echo_responder(body: str) -> str | None:
    """Answer ``echo X`` with ``X``; leave anything else unanswered."""
    if body.startswith("echo "):
        return body.removeprefix("echo ")
    return None


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


@pytest.fixture
def fake_interpreter() -> FakeInterpreter:
    return FakeInterpreter()


@pytest.fixture
def echo_interpreter() -> FakeInterpreter:
    return FakeInterpreter(echo_responder)


@pytest.fixture
def interpreter_factory() -> Callable[..., FakeInterpreter]:
    return FakeInterpreter


@pytest.fixture(name="wait_until")
def wait_until_fixture() -> Callable[..., object]:
    return wait_until
