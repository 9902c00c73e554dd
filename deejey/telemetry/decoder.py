"""Telemetry line decoding."""

from __future__ import annotations

import re
from typing import Tuple

from ..constants import FIELD_DELIMITER

_INTEGER_FIELD = re.compile(r"-?\d+")


class MalformedTelemetry(ValueError):
    """Raised when a telemetry line contains a non-integer field."""

    def __init__(self, line: str, field: str) -> None:
        super().__init__(f"malformed telemetry field {field!r} in line {line!r}")
        self.line = line
        self.field = field


def decode_line(line: str, delimiter: str = FIELD_DELIMITER) -> Tuple[int, ...]:
    """Split ``line`` into integer slider readings, one per channel.

    The whole line is rejected when any field fails to parse; readings are not
    range checked.
    """

    readings = []
    for field in line.split(delimiter):
        token = field.strip()
        if not _INTEGER_FIELD.fullmatch(token):
            raise MalformedTelemetry(line, field)
        readings.append(int(token))
    return tuple(readings)
