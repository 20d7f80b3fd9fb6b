from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Protocol, Sequence, Union

from domain import Environment
from settings import Settings


logger = logging.getLogger("ledger.health")


class HealthChecker(Protocol):
    async def check(self, environment: Environment, content_ref: str) -> bool:
        ...


class StaticHealthChecker:
    """Answers every check the same way; used when no command is configured."""

    def __init__(self, healthy: bool = True):
        self.healthy = healthy

    async def check(self, environment: Environment, content_ref: str) -> bool:
        return self.healthy


class CommandHealthChecker:
    """Runs a command inside the deployed directory; exit code 0 means healthy."""

    def __init__(self, command: Union[str, Sequence[str]]):
        parsed = shlex.split(command) if isinstance(command, str) else list(command)
        if not parsed:
            raise ValueError("health check command must not be empty")
        self.command = parsed

    async def check(self, environment: Environment, content_ref: str) -> bool:
        cwd = Path(content_ref)
        process = await asyncio.create_subprocess_exec(
            *self.command,
            cwd=str(cwd) if cwd.is_dir() else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.CancelledError:
            # Timed out or cancelled by the caller; do not leave the process behind.
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            logger.warning(
                "Health check failed for %s (command=%s returncode=%s stderr=%s)",
                environment.value,
                " ".join(self.command),
                process.returncode,
                stderr_bytes.decode(errors="replace").strip()[-500:],
            )
            return False
        logger.debug(
            "Health check passed for %s: %s",
            environment.value,
            stdout_bytes.decode(errors="replace").strip()[-200:],
        )
        return True


def build_health_checker(settings: Settings) -> HealthChecker:
    command = (settings.health_check_command or "").strip()
    if not command:
        logger.warning("HEALTH_CHECK_COMMAND is not configured; every deploy will be treated as healthy.")
        return StaticHealthChecker(healthy=True)
    return CommandHealthChecker(command)
