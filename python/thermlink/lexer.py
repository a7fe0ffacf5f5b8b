"""Stateful line lexer for the inbound command stream."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE = 1023


class LineLexer:
    """Reassembles newline-terminated commands from arbitrary byte chunks.

    A chunk may hold zero, one or many complete lines.  Anything after
    the last newline is kept and prepended to the next chunk, so a
    command split across reads comes out whole.

    A line longer than ``max_line_size`` is dropped in full: once its
    head has been discarded, everything up to and including its newline
    is skipped, so the tail never comes out as a command of its own.
    """

    def __init__(self, max_line_size: int = DEFAULT_MAX_LINE):
        self.max_line_size = max_line_size
        self.discarded: int = 0
        self._buf = bytearray()
        self._skipping = False

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated by a newline."""
        return bytes(self._buf)

    def feed(self, data: bytes) -> list[str]:
        """Feed raw bytes, return any complete command lines."""
        self._buf.extend(data)
        lines: list[str] = []

        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            raw = bytes(self._buf[:idx])
            del self._buf[:idx + 1]

            if self._skipping:
                self.discarded += len(raw) + 1
                self._skipping = False
                continue

            line = raw.lstrip(b" \t").rstrip(b"\r")
            if not line:
                continue
            lines.append(line.decode("ascii", "replace"))

        if self._skipping:
            self.discarded += len(self._buf)
            self._buf.clear()
        elif len(self._buf) > self.max_line_size:
            logger.warning(
                "no newline in %d buffered bytes (max_line_size %d), "
                "discarding the rest of the line", len(self._buf),
                self.max_line_size)
            self.discarded += len(self._buf)
            self._buf.clear()
            self._skipping = True

        return lines

    def reset(self):
        """Clear internal buffer."""
        self._buf.clear()
        self._skipping = False
