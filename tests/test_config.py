import configparser
from pathlib import Path

import pytest

from deejey.config import load_config, save_config


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "deejey.cfg"
    config = load_config(config_path)

    assert config.serial.port == "COM15"
    assert config.serial.baud_rate == 9600
    assert config.routing.mapping[0] == "master"
    assert config.routing.mapping[2] == ["chrome.exe", "brave.exe"]
    assert config.engine.poll_interval_seconds == 0.2
    assert config.engine.status_request == "vol"
    assert config.engine.channel_count == 0
    assert config.sink.backend == "auto"
    assert config.resilience.reconnect_initial_seconds == 0.5
    assert config.resilience.health_port == 0
    assert config_path.exists()


def test_load_config_without_create_leaves_disk_untouched(tmp_path: Path) -> None:
    config_path = tmp_path / "deejey.cfg"

    load_config(config_path, create=False)

    assert not config_path.exists()


def test_slider_section_replaces_default_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "deejey.cfg"
    config_path.write_text(
        """
[sliders]
0 = master
5 = spotify.exe, vlc.exe
        """.strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.routing.mapping == {0: "master", 5: ["spotify.exe", "vlc.exe"]}


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "deejey.cfg"
    config_file.write_text(
        """
[serial]
port = /dev/ttyACM0
baud_rate = 115200

[engine]
channel_count = 4
status_request =

[sink]
backend = command
app_command = setvol {target} {percent}

[resilience]
health_enabled = true
health_port = 8123
"""
    )

    config = load_config(config_file)

    assert config.serial.port == "/dev/ttyACM0"
    assert config.serial.baud_rate == 115200
    assert config.engine.channel_count == 4
    assert config.engine.status_request == ""
    assert config.sink.backend == "command"
    assert config.sink.app_command == "setvol {target} {percent}"
    assert config.sink.master_command is None
    assert config.resilience.health_enabled is True
    assert config.resilience.health_port == 8123


def test_out_of_range_values_are_clamped(tmp_path: Path) -> None:
    config_file = tmp_path / "deejey.cfg"
    config_file.write_text(
        """
[engine]
poll_interval_seconds = 0
liveness_missed_ticks = -4
max_frame_bytes = 2

[sink]
backend = winamp

[resilience]
reconnect_jitter_ratio = 5
"""
    )

    config = load_config(config_file)

    assert config.engine.poll_interval_seconds == 0.01
    assert config.engine.liveness_missed_ticks == 1
    assert config.engine.max_frame_bytes == 16
    assert config.sink.backend == "auto"
    assert config.resilience.reconnect_jitter_ratio == 1.0


def test_non_numeric_value_raises(tmp_path: Path) -> None:
    config_file = tmp_path / "deejey.cfg"
    config_file.write_text("[serial]\nbaud_rate = fast\n")

    with pytest.raises(ValueError):
        load_config(config_file)


def test_unparseable_file_raises(tmp_path: Path) -> None:
    config_file = tmp_path / "deejey.cfg"
    config_file.write_text("port = COM3\n")

    with pytest.raises(configparser.Error):
        load_config(config_file)


def test_save_config_round_trips(tmp_path: Path) -> None:
    config = load_config(tmp_path / "deejey.cfg")
    config.raw.set("serial", "port", "COM7")
    config.raw.set("sliders", "4", "obs64.exe")

    save_config(config)
    reloaded = load_config(config.path)

    assert reloaded.serial.port == "COM7"
    assert reloaded.routing.mapping[4] == "obs64.exe"
    assert reloaded.routing.mapping[0] == "master"


def test_non_ascii_digit_slider_keys_are_kept_as_text(tmp_path: Path) -> None:
    config_file = tmp_path / "deejey.cfg"
    config_file.write_text("[sliders]\n² = master\n1 = discord.exe\n", encoding="utf-8")

    config = load_config(config_file)

    assert config.routing.mapping == {"²": "master", 1: "discord.exe"}
