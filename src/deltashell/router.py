"""Parse interactive input lines into phase commands and scp requests."""

from __future__ import annotations

from typing import TypeAlias

from dataclasses import dataclass

SCP_PREFIX = "scp "
PHASE_USAGE = "Use format: PHASE: command"
SCP_USAGE = "Invalid scp command. Usage: scp phaseA:/path phaseB:/path"


@dataclass(frozen=True)
class PhaseCommand:
    phase: str
    command: str


@dataclass(frozen=True)
class ScpRequest:
    source: str
    destination: str


@dataclass(frozen=True)
class Invalid:
    message: str


ParsedLine: TypeAlias = PhaseCommand | ScpRequest | Invalid


def parse_line(line: str) -> ParsedLine:
    """Classify one input line.

    ``scp a:/x b:/y`` copies between phases; anything else must look like
    ``PHASE: command`` and is split on the first colon.
    """
    if line.startswith(SCP_PREFIX):
        parts = line[len(SCP_PREFIX) :].split(maxsplit=1)
        if len(parts) != 2:
            return Invalid(SCP_USAGE)
        return ScpRequest(parts[0], parts[1].strip())

    if ":" not in line:
        return Invalid(PHASE_USAGE)
    phase, command = (part.strip() for part in line.split(":", 1))
    if not phase or not command:
        return Invalid(PHASE_USAGE)
    return PhaseCommand(phase, command)


def split_endpoint(endpoint: str) -> tuple[str, str] | None:
    """Split ``phase:/path`` into its phase and path."""
    if ":" not in endpoint:
        return None
    phase, path = endpoint.split(":", 1)
    if not phase:
        return None
    return phase, path
