"""Volume sink that shells out to an external volume utility."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex
from typing import List, Optional

from ..constants import MASTER_TARGET
from .base import SinkCallFailed, SinkConfigurationError

LOGGER = logging.getLogger(__name__)


def _parse_template(template: str) -> List[str]:
    argv = shlex.split(template)
    if not argv:
        raise SinkConfigurationError("volume command must not be empty")
    try:
        for part in argv:
            part.format(target="app.exe", level="0.50", percent="50")
    except (KeyError, IndexError, ValueError) as exc:
        raise SinkConfigurationError(
            f"invalid placeholder in volume command {template!r}: {exc}"
        ) from exc
    return argv


class CommandVolumeSink:
    """Runs one process per volume command.

    Templates are split like a shell command line and may reference
    ``{target}``, ``{level}`` (0.00-1.00) and ``{percent}`` (0-100). A separate
    ``master_command`` can be given for the system output, e.g.
    ``nircmd.exe setsysvolume ...``; otherwise the app template receives
    ``master`` as its target.
    """

    def __init__(self, app_command: str, *, master_command: Optional[str] = None) -> None:
        self._app_argv = _parse_template(app_command)
        self._master_argv = _parse_template(master_command) if master_command else None

    def build_command(self, target: str, level: float) -> List[str]:
        template = self._app_argv
        if target == MASTER_TARGET and self._master_argv is not None:
            template = self._master_argv
        values = {
            "target": target,
            "level": f"{level:.2f}",
            "percent": str(round(level * 100)),
        }
        return [part.format(**values) for part in template]

    async def set_volume(self, target: str, level: float) -> bool:
        argv = self.build_command(target, level)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SinkCallFailed(f"could not run {argv[0]!r}: {exc}") from exc

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            raise

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() if stderr else ""
            raise SinkCallFailed(
                f"{argv[0]} exited with {process.returncode} for {target}: {detail}"
            )
        return True

    async def aclose(self) -> None:
        return None
