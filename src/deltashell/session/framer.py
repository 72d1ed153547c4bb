"""Sentinel-delimited framing of the interpreter output stream."""

from __future__ import annotations

import codecs

from deltashell.types import DEFAULT_SENTINEL


class OutputFramer:
    """Accumulate arbitrarily chunked output and cut it into per-command frames.

    Every frame is the text preceding one sentinel occurrence, stripped of
    surrounding whitespace. After a frame is cut the buffer keeps only the text
    following the sentinel, which may already hold the start of the next frame.
    """

    def __init__(self, sentinel: str = DEFAULT_SENTINEL, *, encoding: str = "utf-8") -> None:
        if not sentinel.strip():
            raise ValueError("sentinel must not be blank")
        self._sentinel = sentinel
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._scan_from = 0

    @property
    def sentinel(self) -> str:
        return self._sentinel

    @property
    def pending(self) -> str:
        """Text received since the last frame boundary."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append one chunk and return every frame it completes, in order."""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if not text:
            return []
        self._buffer += text

        frames: list[str] = []
        while True:
            index = self._buffer.find(self._sentinel, self._scan_from)
            if index < 0:
                # Only the tail can still be the start of a straddling sentinel.
                self._scan_from = max(0, len(self._buffer) - len(self._sentinel) + 1)
                return frames
            frames.append(self._buffer[:index].strip())
            self._buffer = self._buffer[index + len(self._sentinel) :]
            self._scan_from = 0

    def flush(self) -> str:
        """Return and clear the unterminated remainder, e.g. at end of stream."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self.reset()
        return remainder.strip()

    def reset(self) -> None:
        self._decoder = codecs.getincrementaldecoder(self._encoding)(errors="replace")
        self._buffer = ""
        self._scan_from = 0
