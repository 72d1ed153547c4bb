"""FIFO of pending commands with a single in-flight slot."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from deltashell.types import Command


class CommandQueue:
    """Ordered pending commands; only the head may ever be in flight.

    The queue performs no locking. It is owned by one session event loop and
    every mutation happens there.
    """

    def __init__(self) -> None:
        self._items: deque[Command] = deque()
        self._in_flight = False

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Command]:
        return iter(list(self._items))

    @property
    def head(self) -> Command | None:
        return self._items[0] if self._items else None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def append(self, command: Command) -> None:
        self._items.append(command)

    def begin(self) -> Command | None:
        """Mark the head in flight and return it, or None when busy or empty."""
        if self._in_flight or not self._items:
            return None
        self._in_flight = True
        return self._items[0]

    def finish(self) -> Command:
        """Pop the in-flight head once its frame has been received."""
        if not self._in_flight:
            raise RuntimeError("no command in flight")
        self._in_flight = False
        return self._items.popleft()

    def remove(self, command: Command) -> bool:
        """Drop a command that has not been written yet."""
        if self._in_flight and self._items and self._items[0] is command:
            return False
        for index, item in enumerate(self._items):
            if item is command:
                del self._items[index]
                return True
        return False

    def drain(self) -> list[Command]:
        items = list(self._items)
        self._items.clear()
        self._in_flight = False
        return items
