from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional, Tuple, Union

from domain import (
    DeploymentAction,
    DeploymentStatus,
    Environment,
    EnvironmentBusy,
    HealthCheckFailed,
    ValidationError,
    parse_environment,
)
from models import Backup, DeploymentRecord, EnvironmentState, utc_now, validate_version
from repositories import DeploymentRepository, InMemoryDeploymentRepository
from services.build_service import require_positive_limit
from services.health_check import HealthChecker
from services.notifier import Notifier
from settings import Settings
from storage import ContentSet, ContentStore


logger = logging.getLogger("ledger.deploy")

BLUE_GREEN_LOCK_KEY = "blue-green"


class EnvironmentLocks:
    """One lock per environment, shared by every thread and event loop of the process.

    The two blue/green slots share a lock. A caller that finds the environment busy
    polls for up to ``wait_seconds`` and then gets :class:`EnvironmentBusy`; with
    ``wait_seconds == 0`` it fails immediately. Waiters are not served in FIFO order.
    Exclusion does not extend across processes.
    """

    poll_interval = 0.01

    def __init__(self, wait_seconds: float = 0.0):
        self.wait_seconds = wait_seconds
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @staticmethod
    def key_for(environment: Environment) -> str:
        return BLUE_GREEN_LOCK_KEY if environment.is_blue_green_slot else environment.value

    def is_busy(self, environment: Environment) -> bool:
        with self._guard:
            lock = self._locks.get(self.key_for(environment))
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, environment: Environment) -> AsyncIterator[None]:
        key = self.key_for(environment)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        if not await self._acquire(lock):
            raise EnvironmentBusy(key)
        try:
            yield
        finally:
            lock.release()

    async def _acquire(self, lock: threading.Lock) -> bool:
        if lock.acquire(blocking=False):
            return True
        if self.wait_seconds <= 0:
            return False
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds
        while loop.time() < deadline:
            await asyncio.sleep(self.poll_interval)
            if lock.acquire(blocking=False):
                return True
        return False


class DeploymentService:
    """Promotes content sets into environments with backup, health check and revert."""

    def __init__(
        self,
        repository: Union[DeploymentRepository, InMemoryDeploymentRepository],
        storage: ContentStore,
        health_checker: HealthChecker,
        settings: Settings,
        notifier: Optional[Notifier] = None,
        *,
        clock: Callable = utc_now,
    ):
        self.repository = repository
        self.storage = storage
        self.health_checker = health_checker
        self.notifier = notifier
        self.backup_retention = settings.backup_retention
        self.health_check_timeout = settings.health_check_timeout_seconds
        self.locks = EnvironmentLocks(settings.environment_lock_wait_seconds)
        self._clock = clock
        logger.info(
            "DeploymentService initialized (backup_retention=%s, health_check_timeout=%ss, lock_wait=%ss)",
            self.backup_retention,
            self.health_check_timeout,
            self.locks.wait_seconds,
        )

    async def deploy(
        self,
        environment: Union[Environment, str],
        content: Mapping[str, bytes],
        version: str,
    ) -> DeploymentRecord:
        """Back up, overwrite, verify; revert and raise HealthCheckFailed when unhealthy."""
        target = parse_environment(environment)
        version = validate_version(version)
        content_set = self._validate_content(content)

        async with self.locks.hold(target):
            logger.info("Starting deploy environment=%s version=%s", target.value, version)
            backup = None
            if self.storage.has_content(target):
                backup = await self._take_backup(target)

            try:
                self.storage.write(target, content_set)
                healthy, reason = await self.verify_health(target)
            except BaseException:
                # Storage failure or cancellation: never leave the new content half-applied.
                self._revert(target, backup)
                raise

            if not healthy:
                self._revert(target, backup)
                record = await self.record_outcome(
                    target,
                    version,
                    DeploymentStatus.FAILED,
                    DeploymentAction.DEPLOY,
                    backup=backup,
                    message=reason,
                )
                logger.warning(
                    "Deploy reverted environment=%s version=%s reason=%s",
                    target.value,
                    version,
                    reason,
                )
                raise HealthCheckFailed(record, reason)

            record = await self.record_outcome(
                target, version, DeploymentStatus.SUCCESS, DeploymentAction.DEPLOY, backup=backup
            )
            logger.info("Deploy succeeded environment=%s version=%s", target.value, version)
            return record

    async def deploy_blue_green(self, content: Mapping[str, bytes], version: str) -> DeploymentRecord:
        """Deploy into the standby slot and repoint the live alias once it is healthy."""
        version = validate_version(version)
        content_set = self._validate_content(content)

        async with self.locks.hold(Environment.BLUE):
            active = self.storage.get_alias()
            target = active.other_slot if active else Environment.BLUE
            logger.info(
                "Starting blue/green deploy version=%s active=%s target=%s",
                version,
                active.value if active else None,
                target.value,
            )
            # The standby slot is the blue/green rollback target; keep it intact on failure.
            previous = self.storage.read(target)
            try:
                self.storage.write(target, content_set)
                healthy, reason = await self.verify_health(target)
            except BaseException:
                self.put_back(target, previous)
                raise

            if not healthy:
                self.put_back(target, previous)
                record = await self.record_outcome(
                    target,
                    version,
                    DeploymentStatus.FAILED,
                    DeploymentAction.BLUE_GREEN,
                    message=reason,
                )
                logger.warning(
                    "Blue/green deploy failed slot=%s version=%s reason=%s; alias left on %s",
                    target.value,
                    version,
                    reason,
                    active.value if active else None,
                )
                raise HealthCheckFailed(record, reason)

            self.storage.set_alias(target)
            record = await self.record_outcome(
                target, version, DeploymentStatus.SUCCESS, DeploymentAction.BLUE_GREEN
            )
            logger.info("Blue/green cutover complete: live=%s version=%s", target.value, version)
            return record

    @asynccontextmanager
    async def hold_environment(self, environment: Environment) -> AsyncIterator[None]:
        async with self.locks.hold(environment):
            yield

    async def verify_health(self, environment: Environment) -> Tuple[bool, str]:
        """Run the health check with a timeout; timeouts and errors count as unhealthy."""
        content_ref = self.storage.locate(environment)
        try:
            healthy = await asyncio.wait_for(
                self.health_checker.check(environment, content_ref),
                timeout=self.health_check_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Health check timed out for %s after %ss", environment.value, self.health_check_timeout
            )
            return False, f"health check timed out after {self.health_check_timeout:g}s"
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Health check raised for %s", environment.value)
            return False, f"health check error: {exc}"
        if not healthy:
            return False, "health check reported unhealthy"
        return True, "healthy"

    async def record_outcome(
        self,
        environment: Environment,
        version: str,
        status: DeploymentStatus,
        action: DeploymentAction,
        *,
        backup: Optional[Backup] = None,
        message: Optional[str] = None,
    ) -> DeploymentRecord:
        record = await self.repository.append_deployment(
            DeploymentRecord(
                environment=environment,
                timestamp=self._clock(),
                version=version,
                status=status,
                action=action,
                backup_path=backup.content_ref if backup else None,
                message=message,
            )
        )
        if status == DeploymentStatus.SUCCESS:
            await self.repository.set_environment_state(
                EnvironmentState(environment=environment, version=version, updated_at=record.timestamp)
            )
        await self._notify(record)
        return record

    async def latest_backup(self, environment: Union[Environment, str]) -> Optional[Backup]:
        return await self.repository.latest_backup(parse_environment(environment))

    async def list_backups(self, environment: Union[Environment, str]) -> list[Backup]:
        return await self.repository.list_backups(parse_environment(environment))

    async def list_recent_deployments(
        self, limit: int = 10, *, environment: Union[Environment, str, None] = None
    ) -> list[DeploymentRecord]:
        limit = require_positive_limit(limit, "limit")
        target = parse_environment(environment) if environment is not None else None
        return await self.repository.list_recent_deployments(limit, environment=target)

    async def describe_environments(self) -> list[Dict[str, Any]]:
        states = {
            Environment(state.environment): state
            for state in await self.repository.list_environment_states()
        }
        alias = self.storage.get_alias()
        summaries: list[Dict[str, Any]] = []
        for environment in Environment:
            state = states.get(environment)
            backups = await self.repository.list_backups(environment)
            summaries.append(
                {
                    "environment": environment.value,
                    "version": state.version if state else None,
                    "updated_at": state.updated_at if state else None,
                    "has_content": self.storage.has_content(environment),
                    "backup_count": len(backups),
                    "live": alias == environment,
                    "busy": self.locks.is_busy(environment),
                }
            )
        return summaries

    async def describe_blue_green_state(self) -> Dict[str, Any]:
        active = self.storage.get_alias()
        standby = active.other_slot if active else None
        active_state = await self.repository.get_environment_state(active) if active else None
        return {
            "active_slot": active.value if active else None,
            "standby_slot": standby.value if standby else None,
            "active_version": active_state.version if active_state else None,
            "next_cutover_target": (standby or Environment.BLUE).value,
        }

    async def _take_backup(self, environment: Environment) -> Backup:
        current_state = await self.repository.get_environment_state(environment)
        content_ref = self.storage.snapshot(environment)
        stored, evicted = await self.repository.add_backup(
            Backup(
                environment=environment,
                created_at=self._clock(),
                content_ref=content_ref,
                version=current_state.version if current_state else None,
            ),
            keep=self.backup_retention,
        )
        for old in evicted:
            logger.info(
                "Evicting backup %s of %s (created_at=%s)",
                old.content_ref,
                environment.value,
                old.created_at.isoformat(),
            )
            try:
                self.storage.discard(old.content_ref)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Failed to discard evicted backup %s: %s", old.content_ref, exc)
        return stored

    def put_back(self, environment: Environment, previous: Optional[ContentSet]) -> None:
        """Reinstate content read before an overwrite; ``None`` means the environment was empty."""
        if previous is None:
            self.storage.clear(environment)
        else:
            self.storage.write(environment, previous)

    def _revert(self, environment: Environment, backup: Optional[Backup]) -> None:
        if backup is None:
            self.storage.clear(environment)
        else:
            self.storage.write(environment, self.storage.restore(backup.content_ref))
        logger.info(
            "Reverted %s to %s",
            environment.value,
            backup.content_ref if backup else "empty",
        )

    async def _notify(self, record: DeploymentRecord) -> None:
        if self.notifier is None:
            return
        action = DeploymentAction(record.action).value
        summary = f"{action} of version {record.version} to {record.environment}"
        if record.message:
            summary = f"{summary}: {record.message}"
        await self.notifier.notify(
            record.status,
            summary,
            f"{action}:{record.environment}",
            record.sequence or 0,
        )

    @staticmethod
    def _validate_content(content: Mapping[str, bytes]) -> ContentSet:
        if not isinstance(content, Mapping):
            raise ValidationError("content must be a mapping of relative path to bytes", field="content")
        content_set: ContentSet = {}
        for name, data in content.items():
            if not isinstance(name, str) or not name:
                raise ValidationError(f"invalid content path: {name!r}", field="content")
            if isinstance(data, str):
                data = data.encode("utf-8")
            if not isinstance(data, (bytes, bytearray)):
                raise ValidationError(f"content for {name!r} must be bytes", field="content")
            content_set[name] = bytes(data)
        return content_set
