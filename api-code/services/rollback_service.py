from __future__ import annotations

import logging
from typing import Union

from domain import (
    DeploymentAction,
    DeploymentStatus,
    Environment,
    HealthCheckFailed,
    NoBackupAvailable,
    parse_environment,
)
from models import DeploymentRecord
from services.deployment_service import BLUE_GREEN_LOCK_KEY, DeploymentService


logger = logging.getLogger("ledger.rollback")

UNKNOWN_VERSION = "unknown"


class RollbackService:
    """Restores an environment from the most recent backup kept by the deployment service.

    A rollback whose health check fails puts back whatever was active before the
    call, records a failed rollback and raises :class:`HealthCheckFailed`. It
    never walks further back on its own; the operator decides what happens next.
    Backups are not consumed, so repeating a rollback restores the same content.
    """

    def __init__(self, deployments: DeploymentService):
        self.deployments = deployments

    async def rollback(self, environment: Union[Environment, str]) -> DeploymentRecord:
        target = parse_environment(environment)
        storage = self.deployments.storage

        async with self.deployments.hold_environment(target):
            backup = await self.deployments.latest_backup(target)
            if backup is None:
                raise NoBackupAvailable(target.value)

            version = backup.version or UNKNOWN_VERSION
            logger.info(
                "Starting rollback environment=%s backup=%s version=%s",
                target.value,
                backup.content_ref,
                version,
            )
            previous = storage.read(target)
            restored = storage.restore(backup.content_ref)
            try:
                storage.write(target, restored)
                healthy, reason = await self.deployments.verify_health(target)
            except BaseException:
                self.deployments.put_back(target, previous)
                raise

            if not healthy:
                self.deployments.put_back(target, previous)
                record = await self.deployments.record_outcome(
                    target,
                    version,
                    DeploymentStatus.FAILED,
                    DeploymentAction.ROLLBACK,
                    backup=backup,
                    message=reason,
                )
                logger.error(
                    "Rollback of %s to %s failed its health check (%s); manual intervention required",
                    target.value,
                    version,
                    reason,
                )
                raise HealthCheckFailed(record, reason)

            record = await self.deployments.record_outcome(
                target,
                version,
                DeploymentStatus.SUCCESS,
                DeploymentAction.ROLLBACK,
                backup=backup,
            )
            logger.info("Rollback succeeded environment=%s version=%s", target.value, version)
            return record

    async def rollback_blue_green(self) -> DeploymentRecord:
        """Point the live alias back at the standby slot (the previous colour)."""
        storage = self.deployments.storage

        async with self.deployments.hold_environment(Environment.BLUE):
            active = storage.get_alias()
            if active is None or not storage.has_content(active.other_slot):
                raise NoBackupAvailable(BLUE_GREEN_LOCK_KEY)

            standby = active.other_slot
            state = await self.deployments.repository.get_environment_state(standby)
            version = state.version if state else UNKNOWN_VERSION
            healthy, reason = await self.deployments.verify_health(standby)
            if not healthy:
                record = await self.deployments.record_outcome(
                    standby,
                    version,
                    DeploymentStatus.FAILED,
                    DeploymentAction.ROLLBACK,
                    message=reason,
                )
                logger.error(
                    "Blue/green rollback to %s failed its health check (%s); alias left on %s",
                    standby.value,
                    reason,
                    active.value,
                )
                raise HealthCheckFailed(record, reason)

            storage.set_alias(standby)
            record = await self.deployments.record_outcome(
                standby, version, DeploymentStatus.SUCCESS, DeploymentAction.ROLLBACK
            )
            logger.info("Blue/green rollback complete: live=%s version=%s", standby.value, version)
            return record
