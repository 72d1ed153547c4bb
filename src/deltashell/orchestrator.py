"""Phase dispatch on top of persistent shell sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, TypeAlias

from loguru import logger

from deltashell.config import DEFAULT_COLOR, DeltaConfig, PhaseConfig, Settings
from deltashell.errors import ExecutionError, SessionError
from deltashell.executor import run_local, run_scp
from deltashell.gates import LogicGates
from deltashell.router import Invalid, PhaseCommand, ScpRequest, parse_line
from deltashell.session import SessionState, ShellSession
from deltashell.transformers import TransformerChain, default_chain
from deltashell.types import CommandResult

EventKind: TypeAlias = Literal["info", "output", "error", "blocked"]


@dataclass(frozen=True)
class Event:
    """One user visible line produced while handling input."""

    kind: EventKind
    text: str
    phase: str | None = None
    color: str = DEFAULT_COLOR


EventSink: TypeAlias = Callable[[Event], None]
SessionFactory: TypeAlias = Callable[[str, PhaseConfig, Settings], ShellSession]


def build_remote_session(phase: str, config: PhaseConfig, settings: Settings) -> ShellSession:
    return ShellSession(
        [*settings.ssh_command, config.ssh],
        name=phase,
        sentinel=settings.sentinel,
        command_timeout=settings.command_timeout,
        timeout_policy=settings.timeout_policy,
    )


class DeltaShell:
    """Route ``PHASE: command`` lines to local execution or a phase's persistent session."""

    def __init__(
        self,
        config: DeltaConfig,
        settings: Settings,
        emit: EventSink,
        *,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.gates = LogicGates(config.logic.gates)
        self._emit = emit
        self._session_factory = session_factory or build_remote_session
        self._chains: dict[str, TransformerChain] = {name: default_chain(name, settings) for name in config.phases}
        self._sessions: dict[str, ShellSession] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}

    @property
    def phases(self) -> dict[str, PhaseConfig]:
        return dict(self.config.phases)

    @property
    def sessions(self) -> dict[str, ShellSession]:
        return dict(self._sessions)

    def chain_for(self, phase: str) -> TransformerChain:
        return self._chains[phase]

    async def handle(self, line: str, *, wait: bool = False) -> CommandResult | None:
        """Handle one input line.

        Remote results are emitted whenever their session delivers them; with
        ``wait`` the call also waits for that result and returns it.
        """
        parsed = parse_line(line)
        if isinstance(parsed, Invalid):
            self._emit(Event("error", parsed.message))
            return None
        if isinstance(parsed, ScpRequest):
            await self._handle_scp(parsed)
            return None
        return await self._handle_phase(parsed, wait=wait)

    async def close(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close()

    async def _handle_scp(self, request: ScpRequest) -> None:
        try:
            output = await run_scp(
                request.source,
                request.destination,
                self.config.targets(),
                timeout_seconds=self.settings.local_timeout_seconds,
            )
        except ExecutionError as exc:
            self._emit(Event("error", f"SCP error: {exc!s}"))
            return
        self._emit(Event("output", output.strip() or "(no output)"))

    async def _handle_phase(self, request: PhaseCommand, *, wait: bool) -> CommandResult | None:
        phase = self.config.phases.get(request.phase)
        if phase is None:
            self._emit(Event("error", f"Unknown phase: {request.phase}"))
            return None
        name, color = request.phase, phase.color

        if not self.gates.is_open(name):
            gate = self.gates.gate_for(name)
            self._emit(Event("blocked", f"[Phase {name}] Blocked: Gate {gate} not enabled", name, color))
            return None
        if self.gates.is_enable_command(name, request.command):
            self.gates.enable(name)
            self._emit(Event("info", f"[Logic] Enabled phase {name}", name, color))
            return None

        command = self._chains[name].apply(request.command)
        if phase.is_local:
            await self._run_local(name, color, command)
            return None
        return await self._run_remote(name, phase, command, wait=wait)

    async def _run_local(self, name: str, color: str, command: str) -> None:
        self._emit(Event("info", f"[Phase {name}] Executing locally...", name, color))
        try:
            output = await run_local(
                command,
                shell=self.settings.local_shell,
                timeout_seconds=self.settings.local_timeout_seconds,
            )
        except ExecutionError as exc:
            self._emit(Event("error", f"Local execution error: {exc!s}", name, color))
            return
        self._emit(Event("output", output.rstrip(), name, color))

    async def _run_remote(self, name: str, phase: PhaseConfig, command: str, *, wait: bool) -> CommandResult | None:
        session = await self._session_for(name, phase)
        if session is None:
            self._emit(Event("error", f"[Phase {name}] No SSH session available", name, phase.color))
            return None
        self._emit(Event("info", f"[Phase {name}] Executing remotely on {phase.ssh}...", name, phase.color))

        def _on_result(result: CommandResult) -> None:
            kind: EventKind = "output" if result.ok else "error"
            self._emit(Event(kind, result.text, name, phase.color))

        try:
            if not wait:
                session.submit(command, _on_result)
                return None
            result = await session.run(command)
        except ValueError as exc:
            self._emit(Event("error", f"[Phase {name}] {exc!s}", name, phase.color))
            return None
        except SessionError as exc:
            self._forget(name, session)
            self._emit(Event("error", f"[Phase {name}] {exc!s}", name, phase.color))
            return None
        _on_result(result)
        return result

    async def _session_for(self, name: str, phase: PhaseConfig) -> ShellSession | None:
        lock = self._session_locks.setdefault(name, asyncio.Lock())
        async with lock:
            session = self._sessions.get(name)
            if session is not None:
                if session.state is not SessionState.CLOSED:
                    return session
                self._forget(name, session)
                await session.close()
            session = self._session_factory(name, phase, self.settings)
            try:
                await session.start()
            except SessionError as exc:
                logger.warning("phase.session.start_failed phase={} target={} error={}", name, phase.ssh, exc)
                return None
            self._sessions[name] = session
            return session

    def _forget(self, name: str, session: ShellSession) -> None:
        if self._sessions.get(name) is session:
            del self._sessions[name]
