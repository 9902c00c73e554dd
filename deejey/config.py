"""Configuration loader for deejey."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from . import constants

SliderMapping = Dict[Union[int, str], Union[str, List[str]]]

SINK_BACKENDS = ("auto", "pycaw", "pulse", "command", "log")


@dataclass(slots=True)
class SerialConfig:
    port: str = constants.DEFAULT_SERIAL_PORT
    baud_rate: int = constants.DEFAULT_BAUD_RATE


@dataclass(slots=True)
class RoutingConfig:
    mapping: SliderMapping = field(
        default_factory=lambda: dict(constants.DEFAULT_SLIDER_MAPPING)
    )


@dataclass(slots=True)
class EngineConfig:
    poll_interval_seconds: float = 0.2
    liveness_missed_ticks: int = 10
    startup_grace_seconds: float = 3.0  # Arduino boards reset when the port opens
    status_request: str = constants.DEFAULT_STATUS_REQUEST
    max_frame_bytes: int = 1024
    channel_count: int = 0  # 0 accepts every reported channel
    sink_timeout_seconds: float = 1.0
    shutdown_timeout_seconds: float = 2.0


@dataclass(slots=True)
class SinkConfig:
    backend: str = "auto"
    session_refresh_seconds: float = 1.0
    app_command: Optional[str] = None
    master_command: Optional[str] = None


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_serial: bool = False


@dataclass(slots=True)
class ResilienceConfig:
    reconnect_initial_seconds: float = 0.5
    reconnect_max_seconds: float = 5.0
    reconnect_jitter_ratio: float = 0.2
    config_poll_seconds: float = 1.0
    health_enabled: bool = False
    health_host: str = "127.0.0.1"
    health_port: int = 0


@dataclass(slots=True)
class BridgeConfig:
    serial: SerialConfig
    routing: RoutingConfig
    engine: EngineConfig
    sink: SinkConfig
    logging: LoggingConfig
    resilience: ResilienceConfig
    raw: ConfigParser = field(compare=False, repr=False)
    path: Path = field(compare=False)


def _default_sections() -> dict[str, dict[str, str]]:
    engine = EngineConfig()
    resilience = ResilienceConfig()
    return {
        "serial": {
            "port": constants.DEFAULT_SERIAL_PORT,
            "baud_rate": str(constants.DEFAULT_BAUD_RATE),
        },
        "engine": {
            "poll_interval_seconds": str(engine.poll_interval_seconds),
            "liveness_missed_ticks": str(engine.liveness_missed_ticks),
            "startup_grace_seconds": str(engine.startup_grace_seconds),
            "status_request": engine.status_request,
            "max_frame_bytes": str(engine.max_frame_bytes),
            "channel_count": str(engine.channel_count),
            "sink_timeout_seconds": str(engine.sink_timeout_seconds),
            "shutdown_timeout_seconds": str(engine.shutdown_timeout_seconds),
        },
        "sink": {
            "backend": "auto",
            "session_refresh_seconds": "1.0",
        },
        "logging": {
            "level": "INFO",
            "path": str(constants.DEFAULT_LOG_PATH),
            "log_serial": "false",
        },
        "resilience": {
            "reconnect_initial_seconds": str(resilience.reconnect_initial_seconds),
            "reconnect_max_seconds": str(resilience.reconnect_max_seconds),
            "reconnect_jitter_ratio": str(resilience.reconnect_jitter_ratio),
            "config_poll_seconds": str(resilience.config_poll_seconds),
            "health_enabled": "false",
            "health_host": resilience.health_host,
            "health_port": str(resilience.health_port),
        },
    }


def _format_mapping(mapping: SliderMapping) -> dict[str, str]:
    formatted: dict[str, str] = {}
    for index, targets in mapping.items():
        if isinstance(targets, str):
            formatted[str(index)] = targets
        else:
            formatted[str(index)] = ", ".join(targets)
    return formatted


def _parse_mapping(section: dict[str, str]) -> SliderMapping:
    mapping: SliderMapping = {}
    for key, value in section.items():
        stripped = key.strip()
        index: Union[int, str] = (
            int(stripped) if stripped.isascii() and stripped.isdigit() else key
        )
        targets = [item.strip() for item in value.split(",")]
        if len(targets) == 1:
            mapping[index] = targets[0]
        else:
            mapping[index] = targets
    return mapping


def _optional(parser: ConfigParser, section: str, option: str) -> Optional[str]:
    value = parser.get(section, option, fallback="").strip()
    return value or None


def load_config(path: Optional[Path] = None, *, create: bool = True) -> BridgeConfig:
    """Load configuration from disk, applying defaults where necessary.

    When ``create`` is true and the file does not exist yet, the defaults are
    written to ``path`` so the user has something to edit.

    Raises:
        configparser.Error: If the file exists but cannot be parsed.
        ValueError: If a numeric option holds a non-numeric value.
    """

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(_default_sections())

    exists = config_path.exists()
    if exists:
        parser.read(config_path, encoding="utf-8")

    # The slider table replaces the default as a whole rather than merging.
    if not parser.has_section("sliders"):
        parser.read_dict({"sliders": _format_mapping(constants.DEFAULT_SLIDER_MAPPING)})

    serial = SerialConfig(
        port=parser.get("serial", "port").strip(),
        baud_rate=max(
            1,
            parser.getint("serial", "baud_rate", fallback=constants.DEFAULT_BAUD_RATE),
        ),
    )

    routing = RoutingConfig(mapping=_parse_mapping(dict(parser["sliders"])))

    engine_defaults = EngineConfig()
    engine = EngineConfig(
        poll_interval_seconds=max(
            0.01,
            parser.getfloat(
                "engine",
                "poll_interval_seconds",
                fallback=engine_defaults.poll_interval_seconds,
            ),
        ),
        liveness_missed_ticks=max(
            1,
            parser.getint(
                "engine",
                "liveness_missed_ticks",
                fallback=engine_defaults.liveness_missed_ticks,
            ),
        ),
        startup_grace_seconds=max(
            0.0,
            parser.getfloat(
                "engine",
                "startup_grace_seconds",
                fallback=engine_defaults.startup_grace_seconds,
            ),
        ),
        status_request=parser.get(
            "engine", "status_request", fallback=engine_defaults.status_request
        ).strip(),
        max_frame_bytes=max(
            16,
            parser.getint(
                "engine", "max_frame_bytes", fallback=engine_defaults.max_frame_bytes
            ),
        ),
        channel_count=max(
            0,
            parser.getint(
                "engine", "channel_count", fallback=engine_defaults.channel_count
            ),
        ),
        sink_timeout_seconds=max(
            0.05,
            parser.getfloat(
                "engine",
                "sink_timeout_seconds",
                fallback=engine_defaults.sink_timeout_seconds,
            ),
        ),
        shutdown_timeout_seconds=max(
            0.1,
            parser.getfloat(
                "engine",
                "shutdown_timeout_seconds",
                fallback=engine_defaults.shutdown_timeout_seconds,
            ),
        ),
    )

    backend = parser.get("sink", "backend", fallback="auto").strip().lower()
    if backend not in SINK_BACKENDS:
        backend = "auto"

    sink = SinkConfig(
        backend=backend,
        session_refresh_seconds=max(
            0.0, parser.getfloat("sink", "session_refresh_seconds", fallback=1.0)
        ),
        app_command=_optional(parser, "sink", "app_command"),
        master_command=_optional(parser, "sink", "master_command"),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(
            parser.get("logging", "path", fallback=str(constants.DEFAULT_LOG_PATH))
        ).expanduser(),
        log_serial=parser.getboolean("logging", "log_serial", fallback=False),
    )

    resilience = ResilienceConfig(
        reconnect_initial_seconds=max(
            0.05,
            parser.getfloat("resilience", "reconnect_initial_seconds", fallback=0.5),
        ),
        reconnect_max_seconds=parser.getfloat(
            "resilience", "reconnect_max_seconds", fallback=5.0
        ),
        reconnect_jitter_ratio=max(
            0.0,
            min(
                1.0,
                parser.getfloat("resilience", "reconnect_jitter_ratio", fallback=0.2),
            ),
        ),
        config_poll_seconds=max(
            0.1, parser.getfloat("resilience", "config_poll_seconds", fallback=1.0)
        ),
        health_enabled=parser.getboolean(
            "resilience", "health_enabled", fallback=False
        ),
        health_host=parser.get("resilience", "health_host", fallback="127.0.0.1"),
        health_port=parser.getint("resilience", "health_port", fallback=0),
    )

    config = BridgeConfig(
        serial=serial,
        routing=routing,
        engine=engine,
        sink=sink,
        logging=logging_config,
        resilience=resilience,
        raw=parser,
        path=config_path,
    )

    if create and not exists:
        save_config(config)

    return config


def save_config(config: BridgeConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
