"""Serial session supervision and reconnection management.

This module owns the serial transport lifecycle: it opens the device, feeds
received bytes through the telemetry pipeline, polls the device for liveness,
and reconnects with capped backoff whenever the session fails.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from .telemetry.framing import FrameOverflow
from .transport import (
    EventKind,
    SerialLineProtocol,
    SessionEvent,
    TransportIOError,
    TransportOpener,
    TransportOpenFailed,
    open_serial_transport,
)

if TYPE_CHECKING:
    from .config import EngineConfig, ResilienceConfig, SerialConfig
    from .telemetry.pipeline import TelemetryPipeline

LOGGER = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Current state of the serial session."""

    CLOSED = "closed"
    """No transport is open; either stopped or waiting to reconnect."""

    OPENING = "opening"
    """Attempting to open the serial device."""

    OPEN = "open"
    """Transport open and telemetry flowing."""

    DEGRADED = "degraded"
    """Session failed; the transport is being torn down."""


class LivenessTimeout(TransportIOError):
    """Raised when the device stops answering status requests."""


StateListener = Callable[[ConnectionState, Optional[str]], Awaitable[None] | None]


class SerialSupervisor:
    """Coordinates the serial session lifecycle.

    Key responsibilities:
    - Open the transport and reset slider state on every successful open
    - Merge read events and poll ticks into one serialized processing loop
    - Detect silent disconnects through periodic status requests
    - Reconnect with capped exponential backoff until explicitly stopped
    """

    def __init__(
        self,
        *,
        serial_config: SerialConfig,
        engine_config: EngineConfig,
        resilience_config: ResilienceConfig,
        pipeline: TelemetryPipeline,
        opener: Optional[TransportOpener] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._serial = serial_config
        self._engine = engine_config
        self._resilience = resilience_config
        self._pipeline = pipeline
        self._opener = opener or open_serial_transport
        self._monotonic = monotonic

        status = engine_config.status_request
        self._status_request = f"{status}\n".encode("ascii") if status else b""

        self._state = ConnectionState.CLOSED
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._transport: Optional[asyncio.Transport] = None
        self._listeners: list[StateListener] = []
        self.sessions_opened = 0
        self.missed_ticks = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def counters(self) -> dict[str, int]:
        return {
            "sessions_opened": self.sessions_opened,
            "missed_ticks": self.missed_ticks,
            "lines_processed": self._pipeline.lines_processed,
            "lines_rejected": self._pipeline.lines_rejected,
        }

    def register_state_listener(self, listener: StateListener) -> None:
        """Register a callback invoked on every state transition."""
        self._listeners.append(listener)

    def start(self) -> None:
        """Start the supervision task."""
        if self.is_running:
            LOGGER.warning("Serial supervisor already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._supervision_loop())

    async def stop(self) -> None:
        """Stop supervision, close the transport and enter terminal CLOSED.

        In-flight work (including a pending volume sink call) is cancelled and
        awaited for at most ``shutdown_timeout_seconds``.
        """
        self._stop_event.set()

        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            done, _ = await asyncio.wait(
                {task}, timeout=self._engine.shutdown_timeout_seconds
            )
            if not done:
                LOGGER.warning(
                    "Serial session did not stop within %.1fs; abandoning it",
                    self._engine.shutdown_timeout_seconds,
                )

        self._close_transport()
        await self._set_state(ConnectionState.CLOSED, "stopped")

    async def _supervision_loop(self) -> None:
        """Main loop: open, serve the session, back off, repeat."""
        delay = self._resilience.reconnect_initial_seconds

        while not self._stop_event.is_set():
            opened = await self._serve_once()
            if opened:
                delay = self._resilience.reconnect_initial_seconds

            if self._stop_event.is_set():
                break

            sleep_for = self._jittered(delay)
            LOGGER.info(
                "Reconnecting to %s in %.1fs", self._serial.port, sleep_for
            )
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_for)
                # Stop event was set
                break
            except asyncio.TimeoutError:
                pass

            max_delay = max(
                self._resilience.reconnect_initial_seconds,
                self._resilience.reconnect_max_seconds,
            )
            delay = min(delay * 2, max_delay)

    async def _serve_once(self) -> bool:
        """Run one session from OPENING to CLOSED; return whether it opened."""
        port = self._serial.port
        await self._set_state(
            ConnectionState.OPENING, f"{port} at {self._serial.baud_rate} baud"
        )

        events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        try:
            transport = await self._opener(
                self._serial, lambda: SerialLineProtocol(events)
            )
        except TransportOpenFailed as exc:
            LOGGER.warning("Failed to open serial port: %s", exc)
            await self._set_state(ConnectionState.CLOSED, str(exc))
            return False
        except Exception as exc:
            LOGGER.exception("Unexpected error opening serial port %s", port)
            await self._set_state(ConnectionState.CLOSED, str(exc))
            return False

        self._transport = transport
        self.sessions_opened += 1
        self._pipeline.reset()
        await self._set_state(ConnectionState.OPEN, port)

        try:
            await self._run_session(transport, events)
        except FrameOverflow as exc:
            LOGGER.error("Telemetry framing overflow on %s: %s", port, exc)
            await self._set_state(ConnectionState.DEGRADED, str(exc))
        except TransportIOError as exc:
            LOGGER.warning("Serial session on %s failed: %s", port, exc)
            await self._set_state(ConnectionState.DEGRADED, str(exc))
        except Exception as exc:
            LOGGER.exception("Serial session on %s crashed", port)
            await self._set_state(ConnectionState.DEGRADED, str(exc))
        finally:
            self._close_transport()

        await self._set_state(ConnectionState.CLOSED, "reconnect pending")
        return True

    async def _run_session(
        self, transport: asyncio.Transport, events: asyncio.Queue[SessionEvent]
    ) -> None:
        ticker = asyncio.create_task(self._tick(events))
        opened_at = self._monotonic()
        grace = self._engine.startup_grace_seconds
        threshold = self._engine.liveness_missed_ticks
        lines_since_tick = 0
        seen_line = False
        self.missed_ticks = 0

        try:
            while True:
                event = await events.get()

                if event.kind is EventKind.DATA:
                    count = await self._pipeline.feed(event.data)
                    if count:
                        lines_since_tick += count
                        seen_line = True
                    continue

                if event.kind is EventKind.LOST:
                    detail = event.error or "closed by device"
                    raise TransportIOError(f"connection lost: {detail}")

                if lines_since_tick:
                    self.missed_ticks = 0
                elif seen_line or self._monotonic() - opened_at >= grace:
                    self.missed_ticks += 1
                    if self.missed_ticks >= threshold:
                        raise LivenessTimeout(
                            f"no telemetry for {self.missed_ticks} consecutive polls"
                        )
                lines_since_tick = 0
                self._request_status(transport)
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker

    async def _tick(self, events: asyncio.Queue[SessionEvent]) -> None:
        interval = self._engine.poll_interval_seconds
        while True:
            await asyncio.sleep(interval)
            events.put_nowait(SessionEvent(EventKind.TICK))

    def _request_status(self, transport: asyncio.Transport) -> None:
        if not self._status_request:
            return
        try:
            transport.write(self._status_request)
        except Exception as exc:
            raise TransportIOError(f"status request failed: {exc}") from exc

    def _close_transport(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is None:
            return
        try:
            transport.abort()
        except Exception:
            LOGGER.debug("Error aborting serial transport", exc_info=True)

    def _jittered(self, delay: float) -> float:
        jitter_ratio = max(0.0, min(1.0, self._resilience.reconnect_jitter_ratio))
        if jitter_ratio <= 0.0:
            return delay
        jitter = delay * jitter_ratio
        return random.uniform(max(0.05, delay - jitter), delay + jitter)

    async def _set_state(
        self, state: ConnectionState, detail: Optional[str] = None
    ) -> None:
        previous = self._state
        self._state = state
        if previous != state:
            LOGGER.info(
                "Serial state %s -> %s (%s)",
                previous.value,
                state.value,
                detail or state.value,
            )

        for listener in list(self._listeners):
            try:
                result = listener(state, detail)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                LOGGER.warning("Serial state listener failed", exc_info=True)
