"""Rebuild engine output lines from arbitrarily chunked reads."""

from __future__ import annotations

from typing import Iterator

LINE_TERMINATOR = "\n"


class LineReassembler:
    """Accumulates raw output fragments and yields complete, trimmed lines."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, raw_chunk: str) -> Iterator[str]:
        """Append *raw_chunk* and yield every line it completes.

        The chunk is buffered immediately; the returned iterator is lazy and
        extracts lines as it is consumed. The partial tail stays buffered for
        the next call. Blank lines are skipped.
        """
        if raw_chunk:
            self._buffer += raw_chunk
        return self._drain()

    def _drain(self) -> Iterator[str]:
        while True:
            cut = self._buffer.find(LINE_TERMINATOR)
            if cut < 0:
                return
            line = self._buffer[:cut].strip()
            self._buffer = self._buffer[cut + len(LINE_TERMINATOR):]
            if line:
                yield line

    def reset(self) -> None:
        self._buffer = ""
