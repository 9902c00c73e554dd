"""Serial transport plumbing built on pyserial-asyncio."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import serial
import serial_asyncio

from .config import SerialConfig

LOGGER = logging.getLogger(__name__)


class TransportOpenFailed(RuntimeError):
    """Raised when the serial device cannot be opened (absent, busy, invalid)."""


class TransportIOError(RuntimeError):
    """Raised when an open serial session fails mid-stream."""


class EventKind(str, Enum):
    """Kinds of events feeding a serial session's processing loop."""

    DATA = "data"
    """Bytes received from the device."""

    TICK = "tick"
    """Poll timer fired."""

    LOST = "lost"
    """The transport reported that the connection is gone."""


@dataclass(frozen=True, slots=True)
class SessionEvent:
    kind: EventKind
    data: bytes = b""
    error: Optional[BaseException] = None


class SerialLineProtocol(asyncio.Protocol):
    """Forwards transport callbacks into a session's event queue.

    Reads are delivered as they arrive; all parsing happens in the single
    consumer of the queue.
    """

    def __init__(self, events: asyncio.Queue[SessionEvent]) -> None:
        self._events = events
        self.transport: Optional[asyncio.BaseTransport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport

    def data_received(self, data: bytes) -> None:
        self._events.put_nowait(SessionEvent(EventKind.DATA, data=bytes(data)))

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._events.put_nowait(SessionEvent(EventKind.LOST, error=exc))


ProtocolFactory = Callable[[], asyncio.Protocol]
TransportOpener = Callable[[SerialConfig, ProtocolFactory], Awaitable[asyncio.Transport]]


async def open_serial_transport(
    config: SerialConfig, protocol_factory: ProtocolFactory
) -> asyncio.Transport:
    """Open ``config.port`` and attach a protocol built by ``protocol_factory``.

    Raises:
        TransportOpenFailed: If the port is missing, busy or misconfigured.
    """

    loop = asyncio.get_running_loop()
    LOGGER.debug("Opening serial port %s at %d baud", config.port, config.baud_rate)
    try:
        transport, _ = await serial_asyncio.create_serial_connection(
            loop,
            protocol_factory,
            config.port,
            baudrate=config.baud_rate,
        )
    except (serial.SerialException, OSError, ValueError) as exc:
        raise TransportOpenFailed(
            f"{config.port} at {config.baud_rate} baud: {exc}"
        ) from exc
    return transport


def list_serial_ports() -> list[tuple[str, str]]:
    """Return ``(device, description)`` pairs for the serial ports on this host."""

    from serial.tools import list_ports

    return [(port.device, port.description) for port in list_ports.comports()]
