"""Polling watcher that turns config file edits into reload requests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

LOGGER = logging.getLogger(__name__)

ChangeCallback = Callable[[], Awaitable[object] | object]


class ConfigWatcher:
    """Calls ``on_change`` once for every observed modification of ``path``.

    The file's modification time and size are sampled every ``interval``
    seconds. A file that disappears is not reported until it comes back, so an
    editor replacing the file does not trigger a reload of a missing config.
    """

    def __init__(
        self, path: Path, on_change: ChangeCallback, *, interval: float = 1.0
    ) -> None:
        self._path = path
        self._on_change = on_change
        self._interval = interval
        self._task: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._watch_loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def _signature(self) -> Optional[Tuple[int, int]]:
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    async def _watch_loop(self) -> None:
        last = self._signature()
        while True:
            await asyncio.sleep(self._interval)
            current = self._signature()
            if current == last:
                continue
            last = current
            if current is None:
                LOGGER.warning("Config file %s disappeared; keeping current settings", self._path)
                continue

            LOGGER.info("Config file %s changed, reloading", self._path)
            try:
                result = self._on_change()
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                LOGGER.exception("Config reload callback failed")
