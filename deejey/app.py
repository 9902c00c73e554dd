"""Main application entry-point for deejey."""

from __future__ import annotations

import asyncio
import configparser
import logging
from typing import Callable, Optional

from .config import BridgeConfig, load_config
from .connection import ConnectionState, SerialSupervisor
from .dispatch import VolumeDispatcher
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .routing import ActiveRoutingTable, InvalidRoutingConfig, RoutingTable
from .sinks import SinkConfigurationError, VolumeSink, create_sink
from .telemetry import TelemetryPipeline
from .transport import TransportOpener
from .watcher import ConfigWatcher

LOGGER = logging.getLogger(__name__)

ConfigOverrides = Callable[[BridgeConfig], BridgeConfig]


class DeejeyApp:
    """Coordinates application startup, hot reload and shutdown.

    This class wires the serial supervisor, telemetry pipeline, routing table
    and volume sink together, and owns:
    - the single active routing table, swapped atomically on reload
    - the config file watcher that triggers reloads
    - the optional `/healthz` endpoint

    ``overrides`` is applied to the initial configuration and again to every
    configuration re-read from disk, so command-line settings survive edits
    of the file. The sink and transport opener can be injected for testing.
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        *,
        sink: Optional[VolumeSink] = None,
        opener: Optional[TransportOpener] = None,
        watch_config: bool = True,
        overrides: Optional[ConfigOverrides] = None,
    ) -> None:
        self._overrides = overrides
        self._config = self._with_overrides(config or load_config())
        self._sink = sink
        self._owns_sink = sink is None
        self._opener = opener
        self._watch_config = watch_config
        self._routing = ActiveRoutingTable()
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._supervisor: Optional[SerialSupervisor] = None
        self._watcher: Optional[ConfigWatcher] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._reload_lock: Optional[asyncio.Lock] = None
        self._health.register_counters("session", self._session_counters)

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def routing(self) -> ActiveRoutingTable:
        return self._routing

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def supervisor(self) -> Optional[SerialSupervisor]:
        return self._supervisor

    async def run(self) -> None:
        """Run until :meth:`request_shutdown` is called or the task is cancelled.

        Raises:
            SinkConfigurationError: If the configured volume backend cannot be
                created on this host.
        """

        self._shutdown_event = asyncio.Event()

        LOGGER.info("deejey starting with config: %s", self._config.path)
        try:
            await self._start_services()
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("deejey received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(
        cls,
        config: Optional[BridgeConfig] = None,
        *,
        overrides: Optional[ConfigOverrides] = None,
    ) -> None:
        instance = cls(config=config, overrides=overrides)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_serial=instance._config.logging.log_serial,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("deejey received shutdown signal")

    async def _start_services(self) -> None:
        if self._sink is None:
            self._sink = create_sink(self._config.sink)
        await self._health.update("sink", True, self._config.sink.backend)

        try:
            table = RoutingTable.from_mapping(self._config.routing.mapping)
        except InvalidRoutingConfig as exc:
            LOGGER.error(
                "Invalid slider mapping in %s: %s; sliders stay inert until it is fixed",
                self._config.path,
                exc,
            )
            await self._health.update("routing", False, f"rejected: {exc}")
        else:
            self._routing.replace(table)
            await self._health.update("routing", True, f"{len(table)} sliders mapped")

        await self._start_health_server()
        self._start_supervisor(self._config)

        if self._watch_config:
            self._watcher = ConfigWatcher(
                self._config.path,
                self.reload,
                interval=self._config.resilience.config_poll_seconds,
            )
            self._watcher.start()

    def _with_overrides(self, config: BridgeConfig) -> BridgeConfig:
        if self._overrides is None:
            return config
        return self._overrides(config)

    def _start_supervisor(self, config: BridgeConfig) -> None:
        sink = self._sink
        if sink is None:
            raise RuntimeError("volume sink must be created before the serial session")
        dispatcher = VolumeDispatcher(
            self._routing,
            sink,
            call_timeout=config.engine.sink_timeout_seconds,
        )
        pipeline = TelemetryPipeline(
            dispatcher,
            max_frame_bytes=config.engine.max_frame_bytes,
            channel_count=config.engine.channel_count,
        )
        supervisor = SerialSupervisor(
            serial_config=config.serial,
            engine_config=config.engine,
            resilience_config=config.resilience,
            pipeline=pipeline,
            opener=self._opener,
        )
        supervisor.register_state_listener(self._on_serial_state)
        supervisor.start()
        self._supervisor = supervisor

    def _session_counters(self) -> dict[str, int]:
        supervisor = self._supervisor
        return supervisor.counters() if supervisor is not None else {}

    async def _on_serial_state(
        self, state: ConnectionState, detail: Optional[str]
    ) -> None:
        await self._health.update(
            "serial", state == ConnectionState.OPEN, detail or state.value
        )

    async def _start_health_server(self) -> None:
        resilience = self._config.resilience
        if not resilience.health_enabled or resilience.health_port <= 0:
            return

        server = HealthServer(
            self._health,
            resilience.health_host,
            resilience.health_port,
        )
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
            await self._health.update("health-endpoint", False, str(exc))
        else:
            self._health_server = server
            await self._health.update("health-endpoint", True, None)

    async def reload(self) -> bool:
        """Re-read the config file and apply it; see :meth:`apply_config`."""

        path = self._config.path
        try:
            config = self._with_overrides(load_config(path, create=False))
        except (configparser.Error, ValueError) as exc:
            LOGGER.error("Failed to read configuration %s: %s", path, exc)
            await self._health.update("routing", False, f"unreadable config: {exc}")
            return False
        return await self.apply_config(config)

    async def apply_config(self, config: BridgeConfig) -> bool:
        """Validate ``config`` and restart the serial session with it.

        The routing table is built first; if it is invalid nothing changes and
        the previous table stays active. Applying a configuration equal to the
        active one is a no-op.
        """

        if self._reload_lock is None:
            self._reload_lock = asyncio.Lock()

        async with self._reload_lock:
            try:
                table = RoutingTable.from_mapping(config.routing.mapping)
            except InvalidRoutingConfig as exc:
                LOGGER.error(
                    "Rejected configuration from %s: %s; keeping previous routing",
                    config.path,
                    exc,
                )
                await self._health.update("routing", False, f"rejected: {exc}")
                return False

            if config == self._config and table == self._routing.current:
                LOGGER.debug("Configuration unchanged; reload skipped")
                await self._health.update("routing", True, f"{len(table)} sliders mapped")
                return True

            new_sink: Optional[VolumeSink] = None
            if config.sink != self._config.sink and self._owns_sink:
                try:
                    new_sink = create_sink(config.sink)
                except SinkConfigurationError as exc:
                    LOGGER.error("Rejected configuration from %s: %s", config.path, exc)
                    await self._health.update("sink", False, str(exc))
                    return False

            self._routing.replace(table)
            await self._health.update("routing", True, f"{len(table)} sliders mapped")

            if self._supervisor is not None:
                await self._supervisor.stop()
                self._supervisor = None

            if new_sink is not None:
                previous_sink, self._sink = self._sink, new_sink
                if previous_sink is not None:
                    await previous_sink.aclose()
                await self._health.update("sink", True, config.sink.backend)

            self._config = config
            self._start_supervisor(config)
            LOGGER.info(
                "Configuration applied; serial session restarted on %s",
                config.serial.port,
            )
            return True

    async def _stop_services(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

        if self._supervisor is not None:
            await self._supervisor.stop()
            self._supervisor = None

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None
            await self._health.update("health-endpoint", False, "shutdown")

        if self._sink is not None and self._owns_sink:
            try:
                await self._sink.aclose()
            except Exception:
                LOGGER.debug("Error closing volume sink", exc_info=True)
            self._sink = None

        if self._shutdown_event is not None:
            self._shutdown_event.set()
