"""Line framing for the raw serial byte stream."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..constants import LINE_TERMINATOR

LOGGER = logging.getLogger(__name__)


class FrameOverflow(RuntimeError):
    """Raised when a partial line grows past the configured buffer limit.

    ``lines`` holds the complete lines that arrived in the same chunk ahead of
    the oversized remainder.
    """

    def __init__(self, message: str, lines: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.lines: List[str] = list(lines)


class FrameReader:
    """Reassembles newline-terminated telemetry lines from arbitrary chunks.

    A reader belongs to exactly one serial session. Partial data is kept until
    its terminator arrives; a new session must start with a new reader so no
    bytes leak across reconnects.
    """

    def __init__(self, max_buffer: int = 1024) -> None:
        if max_buffer <= 0:
            raise ValueError("max_buffer must be positive")
        self._max_buffer = max_buffer
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes still waiting for a terminator."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[str]:
        """Append ``chunk`` and return every line it completed.

        Raises:
            FrameOverflow: If the unterminated remainder exceeds the limit.
                The buffer is discarded and lines completed by ``chunk``
                are attached to the exception; the session should be torn
                down.
        """

        if not chunk:
            return []

        self._buffer.extend(chunk)
        lines: List[str] = []

        while True:
            index = self._buffer.find(LINE_TERMINATOR)
            if index < 0:
                break
            raw = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            if not raw:
                continue
            lines.append(raw.decode("ascii", errors="replace"))

        if len(self._buffer) > self._max_buffer:
            size = len(self._buffer)
            self._buffer.clear()
            raise FrameOverflow(
                f"unterminated telemetry exceeded {self._max_buffer} bytes ({size} buffered)",
                lines,
            )

        return lines
