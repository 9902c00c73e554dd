"""Dry-run volume sink that only records commands in the log."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)


class LoggingVolumeSink:
    """Accepts every command and logs it; useful for wiring up a new device."""

    async def set_volume(self, target: str, level: float) -> bool:
        LOGGER.info("set volume to %.2f for %s", level, target)
        return True

    async def aclose(self) -> None:
        return None
