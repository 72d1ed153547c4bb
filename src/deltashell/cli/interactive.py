"""Interactive prompt loop for deltashell."""

from __future__ import annotations

from loguru import logger

from deltashell.orchestrator import DeltaShell

from .render import Renderer

EXIT_COMMANDS = frozenset({"exit", "quit"})


class InteractiveCli:
    def __init__(self, shell: DeltaShell, renderer: Renderer) -> None:
        self._shell = shell
        self._renderer = renderer

    async def run(self) -> None:
        try:
            await self._loop()
        finally:
            await self._shell.close()
        self._renderer.info("Goodbye!")

    async def _loop(self) -> None:
        while True:
            try:
                raw = await self._renderer.get_user_input()
            except (KeyboardInterrupt, EOFError):
                return
            line = raw.strip()
            if not line:
                continue
            if line.lower() in EXIT_COMMANDS:
                return
            try:
                await self._shell.handle(line)
            except Exception as exc:
                logger.exception("interactive.error")
                self._renderer.error(f"Unexpected error: {exc!s}")
