import asyncio
from configparser import ConfigParser
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from deejey.config import (
    BridgeConfig,
    EngineConfig,
    LoggingConfig,
    ResilienceConfig,
    RoutingConfig,
    SerialConfig,
    SinkConfig,
)
from deejey.sinks.base import SinkCallFailed
from deejey.transport import TransportOpenFailed


class RecordingSink:
    """Volume sink double that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, float]] = []
        self.failing: set[str] = set()
        self.missing: set[str] = set()
        self.delays: dict[str, float] = {}
        self.closed = False

    async def set_volume(self, target: str, level: float) -> bool:
        self.calls.append((target, level))
        delay = self.delays.get(target)
        if delay:
            await asyncio.sleep(delay)
        if target in self.failing:
            raise SinkCallFailed(f"{target}: simulated failure")
        return target not in self.missing

    async def aclose(self) -> None:
        self.closed = True


class FakeSerialTransport:
    """Stands in for a serial_asyncio transport."""

    def __init__(self, protocol: asyncio.Protocol) -> None:
        self.protocol = protocol
        self.written: list[bytes] = []
        self.aborted = False
        self.fail_writes = False
        self.reply: Optional[bytes] = None

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("write failed")
        self.written.append(data)
        if self.reply is not None:
            asyncio.get_running_loop().call_soon(self.protocol.data_received, self.reply)

    def abort(self) -> None:
        self.aborted = True

    def is_closing(self) -> bool:
        return self.aborted


class FakeOpener:
    """Transport opener double; fails ``failures`` times before succeeding."""

    def __init__(self, failures: int = 0, reply: Optional[bytes] = None) -> None:
        self.failures = failures
        self.reply = reply
        self.calls = 0
        self.configs: list[SerialConfig] = []
        self.transports: list[FakeSerialTransport] = []

    async def __call__(self, config: SerialConfig, protocol_factory: Callable[[], Any]):
        self.calls += 1
        self.configs.append(config)
        if self.failures > 0:
            self.failures -= 1
            raise TransportOpenFailed(f"{config.port}: port busy")
        protocol = protocol_factory()
        transport = FakeSerialTransport(protocol)
        transport.reply = self.reply
        protocol.connection_made(transport)
        self.transports.append(transport)
        return transport

    @property
    def current(self) -> FakeSerialTransport:
        return self.transports[-1]

    def emit(self, data: bytes) -> None:
        self.current.protocol.data_received(data)

    def drop(self) -> None:
        self.current.protocol.connection_lost(OSError("device unplugged"))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def fast_engine() -> EngineConfig:
    return EngineConfig(
        poll_interval_seconds=0.01,
        liveness_missed_ticks=1000,
        startup_grace_seconds=0.0,
        sink_timeout_seconds=0.5,
        shutdown_timeout_seconds=0.5,
    )


@pytest.fixture
def fast_resilience() -> ResilienceConfig:
    return ResilienceConfig(
        reconnect_initial_seconds=0.01,
        reconnect_max_seconds=0.05,
        reconnect_jitter_ratio=0.0,
        config_poll_seconds=0.1,
    )


@pytest.fixture
def build_config(tmp_path: Path, fast_engine, fast_resilience):
    def _build(mapping: Optional[dict] = None, *, port: str = "COM15") -> BridgeConfig:
        return BridgeConfig(
            serial=SerialConfig(port=port, baud_rate=9600),
            routing=RoutingConfig(
                mapping=dict(mapping) if mapping is not None else {0: "master", 1: "discord.exe"}
            ),
            engine=fast_engine,
            sink=SinkConfig(backend="log"),
            logging=LoggingConfig(path=None),
            resilience=fast_resilience,
            raw=ConfigParser(),
            path=tmp_path / "deejey.cfg",
        )

    return _build


@pytest.fixture
def eventually():
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met within timeout")
            await asyncio.sleep(0.005)

    return _wait


@pytest.fixture
def opener_factory() -> Callable[..., FakeOpener]:
    return FakeOpener
