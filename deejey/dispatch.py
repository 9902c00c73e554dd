"""Translation of slider deltas into volume commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Sequence

from .sinks.base import SinkCallFailed, SinkCallTimeout, VolumeSink

if TYPE_CHECKING:
    from .routing import ActiveRoutingTable
    from .telemetry.change_filter import SliderDelta

LOGGER = logging.getLogger(__name__)

MAX_LEVEL = 100


@dataclass(frozen=True, slots=True)
class VolumeCommand:
    target: str
    level: float
    slider: int


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    command: VolumeCommand
    applied: bool
    error: str | None = None


def to_scalar(value: int) -> float:
    """Convert a 0-100 slider reading into the sink's linear 0.0-1.0 scale."""
    return max(0.0, min(1.0, value / MAX_LEVEL))


class VolumeDispatcher:
    """Resolves targets for slider deltas and drives the volume sink.

    Commands in one cycle are issued sequentially in ascending slider order,
    so two sliders aliasing the same target apply last-write-wins. A failing
    or slow target never blocks the remaining commands.
    """

    def __init__(
        self,
        routing: ActiveRoutingTable,
        sink: VolumeSink,
        *,
        call_timeout: float = 1.0,
    ) -> None:
        self._routing = routing
        self._sink = sink
        self._call_timeout = call_timeout

    def plan(self, deltas: Sequence[SliderDelta]) -> List[VolumeCommand]:
        table = self._routing.current
        commands: List[VolumeCommand] = []
        for delta in sorted(deltas, key=lambda item: item.index):
            level = to_scalar(delta.value)
            for target in sorted(table.resolve(delta.index)):
                commands.append(VolumeCommand(target=target, level=level, slider=delta.index))
        return commands

    async def dispatch(self, deltas: Sequence[SliderDelta]) -> List[CommandOutcome]:
        # The table is captured once in plan(); a concurrent replace() only
        # affects the next cycle.
        outcomes: List[CommandOutcome] = []
        for command in self.plan(deltas):
            outcomes.append(await self._issue(command))
        return outcomes

    async def _issue(self, command: VolumeCommand) -> CommandOutcome:
        LOGGER.debug(
            "set volume to %.2f for %s (slider %d)",
            command.level,
            command.target,
            command.slider,
        )
        try:
            applied = await asyncio.wait_for(
                self._call_sink(command), timeout=self._call_timeout
            )
        except asyncio.TimeoutError:
            error = SinkCallTimeout(
                f"{command.target}: no response within {self._call_timeout:.2f}s"
            )
            LOGGER.warning("Volume command abandoned: %s", error)
            return CommandOutcome(command=command, applied=False, error=str(error))
        except SinkCallFailed as exc:
            LOGGER.warning("Volume command failed: %s", exc)
            return CommandOutcome(command=command, applied=False, error=str(exc))
        except Exception as exc:
            LOGGER.warning(
                "Volume sink raised for %s: %s", command.target, exc, exc_info=True
            )
            return CommandOutcome(command=command, applied=False, error=str(exc))

        if not applied:
            LOGGER.debug("No audio session for %s; command skipped", command.target)
        return CommandOutcome(command=command, applied=bool(applied))

    async def _call_sink(self, command: VolumeCommand) -> bool:
        result = self._sink.set_volume(command.target, command.level)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            result = await result
        return bool(result)
