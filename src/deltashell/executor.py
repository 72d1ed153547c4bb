"""One-shot local command and scp execution."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from contextlib import suppress

from deltashell.config import LOCAL_TARGETS
from deltashell.errors import ExecutionError
from deltashell.router import split_endpoint

DEFAULT_TIMEOUT_SECONDS = 60.0


async def run_argv(argv: Sequence[str], *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> str:
    """Run argv to completion and return its merged stdout/stderr."""
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except (OSError, ValueError) as exc:
        raise ExecutionError(f"{argv[0]}: {exc!s}") from exc

    try:
        async with asyncio.timeout(timeout_seconds):
            stdout_bytes, _ = await process.communicate()
    except TimeoutError as exc:
        with suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise ExecutionError(f"{argv[0]} timed out after {timeout_seconds}s") from exc
    return (stdout_bytes or b"").decode("utf-8", errors="replace")


async def run_local(
    command: str,
    *,
    shell: str = "bash",
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    return await run_argv([shell, "-lc", command], timeout_seconds=timeout_seconds)


def scp_argv(source: str, destination: str, targets: Mapping[str, str]) -> list[str]:
    """Translate ``phase:/path`` endpoints into an scp argv."""
    return ["scp", _scp_endpoint(source, targets), _scp_endpoint(destination, targets)]


async def run_scp(
    source: str,
    destination: str,
    targets: Mapping[str, str],
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    return await run_argv(scp_argv(source, destination, targets), timeout_seconds=timeout_seconds)


def _scp_endpoint(endpoint: str, targets: Mapping[str, str]) -> str:
    parts = split_endpoint(endpoint)
    if parts is None:
        raise ExecutionError("Invalid SCP syntax. Usage: scp phase:/path phase:/path")
    phase, path = parts
    host = targets.get(phase)
    if host is None:
        raise ExecutionError(f"Unknown source or destination phase: {phase}")
    if host in LOCAL_TARGETS:
        return path
    return f"{host}:{path}"
