"""Constants used across the deejey package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "deejey"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME
DEFAULT_LOG_PATH = Path.home() / ".config" / APP_NAME / "logs" / f"{APP_NAME}.log"

DEFAULT_SERIAL_PORT = "COM15"
DEFAULT_BAUD_RATE = 9600

MASTER_TARGET = "master"

FIELD_DELIMITER = "|"
LINE_TERMINATOR = b"\n"
DEFAULT_STATUS_REQUEST = "vol"

DEFAULT_SLIDER_MAPPING: dict[int, str | list[str]] = {
    0: MASTER_TARGET,
    1: "discord.exe",
    2: ["chrome.exe", "brave.exe"],
    3: ["pathofexile_x64.exe", "rocketleague.exe"],
}
