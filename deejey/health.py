"""Component health tracking and the optional `/healthz` endpoint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from aiohttp import web

LOGGER = logging.getLogger(__name__)

CounterProvider = Callable[[], Mapping[str, int]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    since: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "since": self.since.isoformat(timespec="seconds"),
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Latest status of each bridge component (serial, routing, sink).

    ``since`` only moves when a component flips between healthy and
    unhealthy, so a flapping serial link is visible in the snapshot. Counter
    providers are sampled on every snapshot.
    """

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._counters: Dict[str, CounterProvider] = {}
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        now = _now()
        async with self._lock:
            previous = self._status.get(name)
            since = now
            if previous is not None and previous.healthy == healthy:
                since = previous.since
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail, since=since, updated_at=now
            )

        if previous is not None and previous.healthy != healthy:
            LOGGER.debug(
                "Component %s is now %s", name, "healthy" if healthy else "unhealthy"
            )

    async def get(self, name: str) -> Optional[ComponentStatus]:
        async with self._lock:
            return self._status.get(name)

    def register_counters(self, name: str, provider: CounterProvider) -> None:
        """Expose ``provider()`` under ``counters.<name>`` in snapshots."""
        self._counters[name] = provider

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        counters: Dict[str, Dict[str, int]] = {}
        for name, provider in self._counters.items():
            try:
                counters[name] = dict(provider())
            except Exception:
                LOGGER.debug("Counter provider %s failed", name, exc_info=True)

        overall = "ok" if all(status.healthy for status in entries) else "degraded"
        return {
            "status": overall,
            "components": [status.as_dict() for status in entries],
            "counters": counters,
        }


class HealthServer:
    """Serves the reporter snapshot as JSON on `/healthz` (503 when degraded)."""

    def __init__(self, reporter: HealthReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None

    @property
    def port(self) -> int:
        """The bound port; differs from the requested one when that was 0."""
        if self._runner is not None and self._runner.addresses:
            return int(self._runner.addresses[0][1])
        return self._port

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._serve_snapshot)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            await web.TCPSite(runner, self._host, self._port).start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        LOGGER.info("Health endpoint listening on http://%s:%s/healthz", self._host, self.port)

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        with contextlib.suppress(Exception):
            await runner.cleanup()

    async def _serve_snapshot(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)
