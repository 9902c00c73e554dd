"""Per-session processing of raw serial bytes into volume commands."""

from __future__ import annotations

import logging
from typing import List

from ..dispatch import CommandOutcome, VolumeDispatcher
from .change_filter import ChangeFilter
from .decoder import MalformedTelemetry, decode_line
from .framing import FrameOverflow, FrameReader

LOGGER = logging.getLogger(__name__)


class TelemetryPipeline:
    """Frame reader, decoder, change filter and dispatcher wired in sequence.

    Lines are processed strictly in arrival order. :meth:`reset` starts a new
    session: the partial frame buffer and all slider state are discarded.
    """

    def __init__(
        self,
        dispatcher: VolumeDispatcher,
        *,
        max_frame_bytes: int = 1024,
        channel_count: int = 0,
    ) -> None:
        self._dispatcher = dispatcher
        self._max_frame_bytes = max_frame_bytes
        self._channel_count = channel_count
        self._reader = FrameReader(max_frame_bytes)
        self._filter = ChangeFilter()
        self.lines_processed = 0
        self.lines_rejected = 0

    @property
    def change_filter(self) -> ChangeFilter:
        return self._filter

    def reset(self) -> None:
        self._reader = FrameReader(self._max_frame_bytes)
        self._filter.reset()

    async def feed(self, chunk: bytes) -> int:
        """Process every complete line in ``chunk``; return how many arrived.

        Raises:
            FrameOverflow: Propagated from the frame reader after the lines
                that completed ahead of the overflow have been processed.
        """

        try:
            lines = self._reader.feed(chunk)
        except FrameOverflow as exc:
            for line in exc.lines:
                await self.process_line(line)
            raise

        for line in lines:
            await self.process_line(line)
        return len(lines)

    async def process_line(self, line: str) -> List[CommandOutcome]:
        try:
            readings = decode_line(line)
        except MalformedTelemetry as exc:
            self.lines_rejected += 1
            LOGGER.debug("Dropping telemetry line: %s", exc)
            return []

        if self._channel_count:
            readings = readings[: self._channel_count]

        self.lines_processed += 1
        deltas = self._filter.filter(readings)
        if not deltas:
            return []
        return await self._dispatcher.dispatch(deltas)
