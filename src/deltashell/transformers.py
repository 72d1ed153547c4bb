"""Text rewrite steps applied to a command before it is executed."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from loguru import logger

if TYPE_CHECKING:
    from deltashell.config import Settings


class Transformer(Protocol):
    """One pure rewrite step."""

    @property
    def name(self) -> str: ...

    def rewrite(self, text: str) -> str: ...


@dataclass(frozen=True)
class EnvSetup:
    prefix: str
    name: str = "env_setup"

    def rewrite(self, text: str) -> str:
        return f"{self.prefix}{text}"


@dataclass(frozen=True)
class DangerFilter:
    """Replace the whole command when it contains a blocked pattern."""

    patterns: tuple[str, ...]
    replacement: str = "echo 'Command blocked for safety!'"
    name: str = "danger_filter"

    def rewrite(self, text: str) -> str:
        for pattern in self.patterns:
            if pattern and pattern in text:
                logger.warning("transformer.blocked pattern={!r} command={!r}", pattern, text)
                return self.replacement
        return text


@dataclass(frozen=True)
class CommandLog:
    phase: str
    name: str = "command_log"

    def rewrite(self, text: str) -> str:
        logger.info("transformer.command phase={} command={!r}", self.phase, text)
        return text


class TransformerChain:
    """Apply rewrite steps strictly in order."""

    def __init__(self, steps: Iterable[Transformer] = ()) -> None:
        self._steps: tuple[Transformer, ...] = tuple(steps)

    @property
    def steps(self) -> Sequence[Transformer]:
        return self._steps

    def names(self) -> list[str]:
        return [step.name for step in self._steps]

    def apply(self, text: str) -> str:
        for step in self._steps:
            text = step.rewrite(text)
        return text


def default_chain(phase: str, settings: Settings) -> TransformerChain:
    return TransformerChain(
        [
            EnvSetup(settings.env_setup),
            DangerFilter(tuple(settings.blocked_patterns), settings.blocked_replacement),
            CommandLog(phase),
        ]
    )
