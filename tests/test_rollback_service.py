from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_PATH = Path(__file__).resolve().parent
API_CODE_PATH = TESTS_PATH.parent / "api-code"
for path in (API_CODE_PATH, TESTS_PATH):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import RecordingNotifier, ScriptedHealthChecker, TickingClock, content, make_settings

from domain import (
    DeploymentAction,
    DeploymentStatus,
    Environment,
    HealthCheckFailed,
    InvalidEnvironment,
    NoBackupAvailable,
)
from repositories import InMemoryDeploymentRepository
from services import DeploymentService, RollbackService
from storage import InMemoryContentStore


class RollbackServiceTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:  # noqa: N802
        self.repository = InMemoryDeploymentRepository()
        self.storage = InMemoryContentStore()
        self.health = ScriptedHealthChecker()
        self.notifier = RecordingNotifier()
        self.deployments = DeploymentService(
            self.repository,
            self.storage,
            self.health,
            make_settings(),
            self.notifier,
            clock=TickingClock(),
        )
        self.rollbacks = RollbackService(self.deployments)

    async def test_rollback_restores_previous_content_exactly(self) -> None:
        c1 = {"app.py": b"\x00\xffbinary-v1", "static/index.html": b"<h1>one</h1>"}
        await self.deployments.deploy("production", c1, "1.0.0")
        await self.deployments.deploy("production", content("two"), "2.0.0")

        record = await self.rollbacks.rollback("production")

        self.assertEqual(self.storage.read(Environment.PRODUCTION), c1)
        self.assertEqual(record.status, DeploymentStatus.SUCCESS)
        self.assertEqual(record.action, DeploymentAction.ROLLBACK)
        self.assertEqual(record.version, "1.0.0")
        backups = await self.deployments.list_backups("production")
        self.assertEqual(len(backups), 1)
        self.assertEqual(record.backup_path, backups[0].content_ref)
        state = await self.repository.get_environment_state(Environment.PRODUCTION)
        self.assertEqual(state.version, "1.0.0")

    async def test_rollback_does_not_consume_backup(self) -> None:
        await self.deployments.deploy("staging", content("one"), "1.0.0")
        await self.deployments.deploy("staging", content("two"), "2.0.0")

        await self.rollbacks.rollback("staging")
        await self.rollbacks.rollback("staging")

        self.assertEqual(self.storage.read(Environment.STAGING), content("one"))
        self.assertEqual(len(await self.deployments.list_backups("staging")), 1)

    async def test_rollback_without_backup_raises(self) -> None:
        with self.assertRaises(NoBackupAvailable):
            await self.rollbacks.rollback("staging")

        await self.deployments.deploy("staging", content("one"), "1.0.0")
        with self.assertRaises(NoBackupAvailable):
            await self.rollbacks.rollback("staging")
        self.assertEqual(self.storage.read(Environment.STAGING), content("one"))

    async def test_failed_rollback_keeps_current_content(self) -> None:
        await self.deployments.deploy("production", content("one"), "1.0.0")
        await self.deployments.deploy("production", content("two"), "2.0.0")
        self.health.answers = [False]

        with self.assertRaises(HealthCheckFailed) as ctx:
            await self.rollbacks.rollback("production")

        self.assertEqual(self.storage.read(Environment.PRODUCTION), content("two"))
        failed = ctx.exception.record
        self.assertEqual(failed.status, DeploymentStatus.FAILED)
        self.assertEqual(failed.action, DeploymentAction.ROLLBACK)
        self.assertEqual(failed.version, "1.0.0")
        state = await self.repository.get_environment_state(Environment.PRODUCTION)
        self.assertEqual(state.version, "2.0.0")
        self.assertEqual(self.notifier.calls[-1]["status"], "failed")
        self.assertEqual(self.notifier.calls[-1]["job_name"], "rollback:production")

    async def test_rollback_rejects_unknown_environment(self) -> None:
        with self.assertRaises(InvalidEnvironment):
            await self.rollbacks.rollback("dev")

    async def test_blue_green_rollback_switches_alias_back(self) -> None:
        await self.deployments.deploy_blue_green(content("one"), "1.0.0")
        await self.deployments.deploy_blue_green(content("two"), "2.0.0")
        self.assertEqual(self.storage.get_alias(), Environment.GREEN)

        record = await self.rollbacks.rollback_blue_green()

        self.assertEqual(self.storage.get_alias(), Environment.BLUE)
        self.assertEqual(record.environment, Environment.BLUE)
        self.assertEqual(record.version, "1.0.0")
        self.assertEqual(record.action, DeploymentAction.ROLLBACK)

    async def test_blue_green_rollback_requires_standby_content(self) -> None:
        with self.assertRaises(NoBackupAvailable):
            await self.rollbacks.rollback_blue_green()

        await self.deployments.deploy_blue_green(content("one"), "1.0.0")
        with self.assertRaises(NoBackupAvailable):
            await self.rollbacks.rollback_blue_green()
        self.assertEqual(self.storage.get_alias(), Environment.BLUE)

    async def test_blue_green_rollback_after_failed_cutover_restores_previous_release(self) -> None:
        await self.deployments.deploy_blue_green(content("v1"), "1.0.0")
        await self.deployments.deploy_blue_green(content("v2"), "2.0.0")
        self.health.answers = [False]
        with self.assertRaises(HealthCheckFailed):
            await self.deployments.deploy_blue_green(content("v3-broken"), "3.0.0")

        record = await self.rollbacks.rollback_blue_green()

        self.assertEqual(self.storage.get_alias(), Environment.BLUE)
        self.assertEqual(self.storage.read(Environment.BLUE), content("v1"))
        self.assertEqual(record.version, "1.0.0")

    async def test_failed_first_cutover_into_empty_slot_leaves_no_rollback_target(self) -> None:
        await self.deployments.deploy_blue_green(content("v1"), "1.0.0")
        self.health.answers = [False]
        with self.assertRaises(HealthCheckFailed):
            await self.deployments.deploy_blue_green(content("v2-broken"), "2.0.0")

        self.assertFalse(self.storage.has_content(Environment.GREEN))
        with self.assertRaises(NoBackupAvailable):
            await self.rollbacks.rollback_blue_green()
        self.assertEqual(self.storage.get_alias(), Environment.BLUE)

    async def test_failed_blue_green_rollback_leaves_alias(self) -> None:
        await self.deployments.deploy_blue_green(content("one"), "1.0.0")
        await self.deployments.deploy_blue_green(content("two"), "2.0.0")
        self.health.answers = [False]

        with self.assertRaises(HealthCheckFailed):
            await self.rollbacks.rollback_blue_green()
        self.assertEqual(self.storage.get_alias(), Environment.GREEN)


if __name__ == "__main__":
    unittest.main()
