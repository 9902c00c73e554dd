"""Command-line interface for deejey."""

from __future__ import annotations

import argparse
import dataclasses
import functools
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import DeejeyApp
from .config import BridgeConfig, load_config
from .routing import InvalidRoutingConfig, RoutingTable
from .sinks import SinkConfigurationError
from .transport import list_serial_ports

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deejey", description="Drive application volumes from a hardware slider box"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="Run the slider bridge")
    start_parser.add_argument("--port", help="Serial port, overrides [serial] port")
    start_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log volume changes instead of applying them",
    )
    start_parser.add_argument(
        "--log-level", help="Log level name, overrides [logging] level"
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and slider routing"
    )
    subparsers.add_parser(
        "list-ports", help="List serial ports usable as [serial] port"
    )

    return parser


def _apply_overrides(config: BridgeConfig, args: argparse.Namespace) -> BridgeConfig:
    if args.port:
        config = dataclasses.replace(
            config, serial=dataclasses.replace(config.serial, port=args.port)
        )
    if args.dry_run:
        config = dataclasses.replace(
            config, sink=dataclasses.replace(config.sink, backend="log")
        )
    if args.log_level:
        config = dataclasses.replace(
            config, logging=dataclasses.replace(config.logging, level=args.log_level)
        )
    return config


def _print_config(config: BridgeConfig) -> None:
    print(f"Configuration loaded from {config.path!s}\n")
    for section in config.raw.sections():
        print(f"[{section}]")
        for key, value in config.raw[section].items():
            print(f"{key} = {value}")
        print()

    try:
        table = RoutingTable.from_mapping(config.routing.mapping)
    except InvalidRoutingConfig as exc:
        print(f"Slider routing is invalid: {exc}")
        return

    print("Slider routing:")
    for index, targets in table.items():
        print(f"  {index}: {', '.join(sorted(targets))}")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "list-ports":
        ports = list_serial_ports()
        if not ports:
            print("No serial ports found")
        for device, description in ports:
            print(f"{device}\t{description}")
        return 0

    config = load_config(args.config)

    if args.command == "show-config":
        _print_config(config)
        return 0

    if args.command == "start":
        try:
            DeejeyApp.start(
                config, overrides=functools.partial(_apply_overrides, args=args)
            )
        except SinkConfigurationError as exc:
            LOGGER.error("Volume backend unavailable: %s", exc)
            return 1
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
