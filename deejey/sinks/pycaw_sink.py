"""Windows volume sink built on pycaw (Core Audio via comtypes)."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from ctypes import POINTER, cast
from typing import Any, Callable, List, Optional

import comtypes
from comtypes import CLSCTX_ALL
from pycaw.pycaw import AudioUtilities, IAudioEndpointVolume

from ..constants import MASTER_TARGET
from .base import SinkCallFailed

LOGGER = logging.getLogger(__name__)


class PycawVolumeSink:
    """Applies levels to the master endpoint and per-process audio sessions.

    COM objects are apartment bound, so every call runs on one dedicated
    worker thread that initialises COM once. The session list is re-enumerated
    at most every ``session_refresh_seconds`` to pick up newly started apps.
    """

    def __init__(
        self,
        *,
        session_refresh_seconds: float = 1.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._refresh_seconds = session_refresh_seconds
        self._monotonic = monotonic
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="pycaw",
            initializer=comtypes.CoInitialize,
        )
        self._sessions: List[Any] = []
        self._sessions_at: Optional[float] = None
        self._endpoint: Any = None

    async def set_volume(self, target: str, level: float) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._apply, target, level)

    async def aclose(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        LOGGER.debug("pycaw sink closed")

    def _apply(self, target: str, level: float) -> bool:
        try:
            if target == MASTER_TARGET:
                self._master_endpoint().SetMasterVolumeLevelScalar(level, None)
                return True

            matched = 0
            for session in self._current_sessions():
                process = session.Process
                if process is None or process.name().lower() != target:
                    continue
                session.SimpleAudioVolume.SetMasterVolume(level, None)
                matched += 1
            return matched > 0
        except Exception as exc:
            # Drop cached COM objects; the device or session may be gone.
            self._sessions_at = None
            self._endpoint = None
            raise SinkCallFailed(f"{target}: {exc}") from exc

    def _current_sessions(self) -> List[Any]:
        now = self._monotonic()
        if self._sessions_at is None or now - self._sessions_at >= self._refresh_seconds:
            self._sessions = list(AudioUtilities.GetAllSessions())
            self._sessions_at = now
            self._endpoint = None
            LOGGER.debug("Enumerated %d audio sessions", len(self._sessions))
        return self._sessions

    def _master_endpoint(self) -> Any:
        if self._endpoint is None:
            speakers = AudioUtilities.GetSpeakers()
            endpoint = getattr(speakers, "EndpointVolume", None)
            if endpoint is None:
                interface = speakers.Activate(IAudioEndpointVolume._iid_, CLSCTX_ALL, None)
                endpoint = cast(interface, POINTER(IAudioEndpointVolume))
            self._endpoint = endpoint
        return self._endpoint
