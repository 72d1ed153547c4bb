"""Logic gates that hold a phase closed until another phase is enabled."""

from __future__ import annotations

from collections.abc import Mapping

ENABLE_PREFIX = "enable "


class LogicGates:
    """Phase -> gate mapping plus the set of gates enabled so far."""

    def __init__(self, gates: Mapping[str, str] | None = None) -> None:
        self._gates = dict(gates or {})
        self._enabled: set[str] = set()

    @property
    def enabled(self) -> frozenset[str]:
        return frozenset(self._enabled)

    def gate_for(self, phase: str) -> str | None:
        return self._gates.get(phase)

    def is_open(self, phase: str) -> bool:
        gate = self._gates.get(phase)
        return gate is None or gate in self._enabled

    def enable(self, name: str) -> None:
        self._enabled.add(name)

    @staticmethod
    def is_enable_command(phase: str, command: str) -> bool:
        """True for ``enable <phase>`` sent to that same phase."""
        return command.strip() == f"{ENABLE_PREFIX}{phase}"
