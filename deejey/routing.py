"""Slider index to audio target routing."""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Iterator, Mapping, Tuple

LOGGER = logging.getLogger(__name__)

_EMPTY: FrozenSet[str] = frozenset()
_INDEX_KEY = re.compile(r"-?[0-9]+")


class InvalidRoutingConfig(ValueError):
    """Raised when a slider mapping cannot be turned into a routing table."""


def normalize_target(target: Any) -> str:
    """Return the canonical (lowercase) form of a target identifier.

    Application names are matched case-insensitively because process names
    change case between launches on some systems.
    """

    if not isinstance(target, str):
        raise InvalidRoutingConfig(
            f"target must be a string, got {type(target).__name__}"
        )
    value = target.strip().lower()
    if not value:
        raise InvalidRoutingConfig("target must not be empty")
    return value


def _parse_index(key: Any) -> int:
    if isinstance(key, bool):
        raise InvalidRoutingConfig(f"slider index must be an integer, got {key!r}")
    if isinstance(key, int):
        index = key
    elif isinstance(key, str) and _INDEX_KEY.fullmatch(key.strip()):
        index = int(key.strip())
    else:
        raise InvalidRoutingConfig(f"slider index must be an integer, got {key!r}")
    if index < 0:
        raise InvalidRoutingConfig(f"slider index must not be negative, got {index}")
    return index


def _parse_targets(index: int, value: Any) -> FrozenSet[str]:
    if isinstance(value, str):
        values: Iterable[Any] = (value,)
    elif isinstance(value, (list, tuple, set, frozenset)):
        values = value
    else:
        raise InvalidRoutingConfig(
            f"slider {index}: expected a target or list of targets, got {type(value).__name__}"
        )
    try:
        return frozenset(normalize_target(item) for item in values)
    except InvalidRoutingConfig as exc:
        raise InvalidRoutingConfig(f"slider {index}: {exc}") from None


class RoutingTable:
    """Immutable mapping from slider index to the set of targets it drives."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[int, FrozenSet[str]] | None = None) -> None:
        self._entries: Mapping[int, FrozenSet[str]] = MappingProxyType(
            {index: frozenset(targets) for index, targets in (entries or {}).items()}
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[Any, Any]) -> "RoutingTable":
        """Validate a ``{index: target | [targets]}`` mapping and build a table.

        Raises:
            InvalidRoutingConfig: If an index is not a non-negative integer or
                a target is not a non-empty string.
        """

        if not isinstance(mapping, Mapping):
            raise InvalidRoutingConfig("slider mapping must be a mapping")

        entries: dict[int, FrozenSet[str]] = {}
        for key, value in mapping.items():
            index = _parse_index(key)
            if index in entries:
                raise InvalidRoutingConfig(f"slider {index} is mapped more than once")
            entries[index] = _parse_targets(index, value)
        return cls(entries)

    def resolve(self, index: int) -> FrozenSet[str]:
        return self._entries.get(index, _EMPTY)

    def items(self) -> Iterator[Tuple[int, FrozenSet[str]]]:
        for index in sorted(self._entries):
            yield index, self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoutingTable):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        body = ", ".join(f"{index}: {sorted(targets)}" for index, targets in self.items())
        return f"RoutingTable({{{body}}})"


class ActiveRoutingTable:
    """Holds the single routing table currently in effect.

    Replacement swaps the reference; tables themselves are never mutated, so a
    reader holding :attr:`current` always sees one consistent table.
    """

    def __init__(self, table: RoutingTable | None = None) -> None:
        self._table = table if table is not None else RoutingTable()

    @property
    def current(self) -> RoutingTable:
        return self._table

    def resolve(self, index: int) -> FrozenSet[str]:
        return self._table.resolve(index)

    def replace(self, table: RoutingTable) -> RoutingTable:
        """Install ``table`` and return the previously active one."""
        previous = self._table
        self._table = table
        LOGGER.info("Routing table replaced (%d sliders mapped)", len(table))
        return previous
