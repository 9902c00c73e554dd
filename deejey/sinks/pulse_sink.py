"""PulseAudio / PipeWire volume sink built on pulsectl."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import pulsectl

from ..constants import APP_NAME, MASTER_TARGET
from .base import SinkCallFailed

LOGGER = logging.getLogger(__name__)

_APP_PROPERTIES = ("application.process.binary", "application.name")


class PulseVolumeSink:
    """Sets the default sink for ``master`` and matching sink inputs for apps.

    pulsectl clients are not thread safe; all calls share one worker thread.
    """

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pulse")
        self._pulse: Optional[pulsectl.Pulse] = None

    async def set_volume(self, target: str, level: float) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._apply, target, level)

    async def aclose(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(self._executor, self._disconnect), timeout=1.0
            )
        except asyncio.TimeoutError:
            LOGGER.debug("Timed out closing pulse client")
        finally:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _client(self) -> pulsectl.Pulse:
        if self._pulse is None:
            self._pulse = pulsectl.Pulse(APP_NAME)
        return self._pulse

    def _disconnect(self) -> None:
        if self._pulse is not None:
            self._pulse.close()
            self._pulse = None

    def _apply(self, target: str, level: float) -> bool:
        try:
            pulse = self._client()
            if target == MASTER_TARGET:
                default_name = pulse.server_info().default_sink_name
                sink = next(
                    (item for item in pulse.sink_list() if item.name == default_name),
                    None,
                )
                if sink is None:
                    return False
                pulse.volume_set_all_chans(sink, level)
                return True

            matched = 0
            for sink_input in pulse.sink_input_list():
                names = {
                    str(sink_input.proplist.get(key, "")).lower()
                    for key in _APP_PROPERTIES
                }
                if target in names:
                    pulse.volume_set_all_chans(sink_input, level)
                    matched += 1
            return matched > 0
        except pulsectl.PulseError as exc:
            self._disconnect()
            raise SinkCallFailed(f"{target}: {exc}") from exc
