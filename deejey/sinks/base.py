"""Protocol definitions for volume sinks."""

from __future__ import annotations

from typing import Awaitable, Protocol, runtime_checkable


class SinkCallFailed(RuntimeError):
    """Raised when a backend fails to apply a volume level to a target."""


class SinkCallTimeout(SinkCallFailed):
    """Raised when a backend call does not finish within its deadline."""


@runtime_checkable
class VolumeSink(Protocol):
    """Contract for components that apply volume levels through the OS.

    ``level`` is linear in ``[0.0, 1.0]``. Targets arrive normalised to
    lowercase; ``"master"`` means the default output device. Implementations
    return ``True`` when at least one audio session was adjusted and ``False``
    when the target is not currently playing (a no-op, not an error). Failures
    raise :class:`SinkCallFailed`.
    """

    def set_volume(self, target: str, level: float) -> Awaitable[bool] | bool:
        ...

    async def aclose(self) -> None:
        """Release backend resources."""
        ...


class SinkConfigurationError(ValueError):
    """Raised when a sink backend cannot be created from configuration."""
