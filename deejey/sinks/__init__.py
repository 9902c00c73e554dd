"""Volume sink backends."""

from __future__ import annotations

import sys

from ..config import SinkConfig
from .base import SinkCallFailed, SinkCallTimeout, SinkConfigurationError, VolumeSink
from .command_sink import CommandVolumeSink
from .logging_sink import LoggingVolumeSink


def create_sink(config: SinkConfig) -> VolumeSink:
    """Instantiate the backend named by ``config.backend``.

    Raises:
        SinkConfigurationError: If the backend is misconfigured or its native
            library is not installed on this host.
    """

    backend = config.backend
    if backend == "auto":
        backend = "pycaw" if sys.platform == "win32" else "pulse"

    if backend == "log":
        return LoggingVolumeSink()

    if backend == "command":
        if not config.app_command:
            raise SinkConfigurationError("command backend requires [sink] app_command")
        return CommandVolumeSink(
            config.app_command, master_command=config.master_command
        )

    if backend == "pycaw":
        try:
            from .pycaw_sink import PycawVolumeSink
        except ImportError as exc:
            raise SinkConfigurationError(f"pycaw backend unavailable: {exc}") from exc
        return PycawVolumeSink(session_refresh_seconds=config.session_refresh_seconds)

    if backend == "pulse":
        try:
            from .pulse_sink import PulseVolumeSink
        except ImportError as exc:
            raise SinkConfigurationError(f"pulse backend unavailable: {exc}") from exc
        return PulseVolumeSink()

    raise SinkConfigurationError(f"unknown sink backend {config.backend!r}")


__all__ = [
    "CommandVolumeSink",
    "LoggingVolumeSink",
    "SinkCallFailed",
    "SinkCallTimeout",
    "SinkConfigurationError",
    "VolumeSink",
    "create_sink",
]
