from pathlib import Path

from deejey import cli
from deejey.config import load_config
from deejey.sinks import SinkConfigurationError


def test_show_config_prints_resolved_sections(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "deejey.cfg"
    config_path.write_text("[serial]\nport = COM4\n")

    assert cli.main(["--config", str(config_path), "show-config"]) == 0

    output = capsys.readouterr().out
    assert "[serial]" in output
    assert "port = COM4" in output
    assert "[sliders]" in output


def test_list_ports_prints_devices(monkeypatch, capsys) -> None:
    monkeypatch.setattr(
        cli, "list_serial_ports", lambda: [("/dev/ttyUSB0", "USB Serial")]
    )

    assert cli.main(["list-ports"]) == 0

    assert "/dev/ttyUSB0\tUSB Serial" in capsys.readouterr().out


def test_list_ports_reports_empty(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "list_serial_ports", lambda: [])

    assert cli.main(["list-ports"]) == 0

    assert "No serial ports found" in capsys.readouterr().out


def test_start_fails_when_backend_is_unavailable(tmp_path: Path, monkeypatch) -> None:
    started: list[object] = []

    def fake_start(config, *, overrides=None) -> None:
        started.append(config)
        raise SinkConfigurationError("pulse backend unavailable")

    monkeypatch.setattr(cli.DeejeyApp, "start", fake_start)

    assert cli.main(["-c", str(tmp_path / "deejey.cfg"), "start"]) == 1
    assert started and started[0].path == tmp_path / "deejey.cfg"


def test_show_config_prints_slider_routing(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "deejey.cfg"
    config_path.write_text("[sliders]\n0 = master\n1 = Brave.exe, chrome.exe\n")

    assert cli.main(["-c", str(config_path), "show-config"]) == 0

    output = capsys.readouterr().out
    assert "Slider routing:" in output
    assert "  1: brave.exe, chrome.exe" in output


def test_show_config_flags_invalid_routing(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "deejey.cfg"
    config_path.write_text("[sliders]\nfirst = master\n")

    assert cli.main(["-c", str(config_path), "show-config"]) == 0

    assert "Slider routing is invalid" in capsys.readouterr().out


def test_start_overrides_are_applied(tmp_path: Path, monkeypatch) -> None:
    started: list[object] = []
    def fake_start(config, *, overrides=None) -> None:
        started.append(overrides(config))

    monkeypatch.setattr(cli.DeejeyApp, "start", fake_start)

    exit_code = cli.main(
        [
            "-c",
            str(tmp_path / "deejey.cfg"),
            "start",
            "--port",
            "/dev/ttyACM0",
            "--dry-run",
            "--log-level",
            "DEBUG",
        ]
    )

    assert exit_code == 0
    config = started[0]
    assert config.serial.port == "/dev/ttyACM0"
    assert config.sink.backend == "log"
    assert config.logging.level == "DEBUG"


def test_start_overrides_are_reapplied_to_reloaded_config(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "deejey.cfg"
    captured: list[object] = []

    def fake_start(config, *, overrides=None) -> None:
        captured.append(overrides)

    monkeypatch.setattr(cli.DeejeyApp, "start", fake_start)
    cli.main(["-c", str(config_path), "start", "--port", "COM7", "--dry-run"])

    config_path.write_text("[serial]\nport = COM15\n\n[sink]\nbackend = pulse\n")
    reloaded = captured[0](load_config(config_path, create=False))

    assert reloaded.serial.port == "COM7"
    assert reloaded.sink.backend == "log"


def test_show_config_reports_malformed_slider_index(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "deejey.cfg"
    config_path.write_text("[sliders]\n--3 = master\n")

    assert cli.main(["-c", str(config_path), "show-config"]) == 0

    assert "Slider routing is invalid" in capsys.readouterr().out
