"""Telemetry framing, decoding and change detection."""

from .change_filter import ChangeFilter, SliderDelta
from .decoder import MalformedTelemetry, decode_line
from .framing import FrameOverflow, FrameReader
from .pipeline import TelemetryPipeline

__all__ = [
    "ChangeFilter",
    "FrameOverflow",
    "FrameReader",
    "MalformedTelemetry",
    "SliderDelta",
    "TelemetryPipeline",
    "decode_line",
]
