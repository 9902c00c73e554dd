"""Suppression of unchanged slider readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True, slots=True)
class SliderDelta:
    """A slider whose reading differs from the last applied value."""

    index: int
    value: int


class ChangeFilter:
    """Tracks the last applied level per slider and emits only changes.

    The first reading for a slider after construction or :meth:`reset` is
    always emitted, so every channel re-baselines after a reconnect.
    """

    def __init__(self) -> None:
        self._state: Dict[int, int] = {}

    def last_value(self, index: int) -> Optional[int]:
        return self._state.get(index)

    def filter(self, readings: Sequence[int]) -> List[SliderDelta]:
        deltas: List[SliderDelta] = []
        for index, value in enumerate(readings):
            if index in self._state and self._state[index] == value:
                continue
            self._state[index] = value
            deltas.append(SliderDelta(index=index, value=value))
        return deltas

    def reset(self) -> None:
        self._state.clear()
