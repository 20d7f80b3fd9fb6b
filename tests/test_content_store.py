from __future__ import annotations

import os
import sys
import tempfile
import unittest
from pathlib import Path

TESTS_PATH = Path(__file__).resolve().parent
API_CODE_PATH = TESTS_PATH.parent / "api-code"
for path in (API_CODE_PATH, TESTS_PATH):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import RecordingNotifier, ScriptedHealthChecker, content, make_settings

from domain import Environment, HealthCheckFailed, StorageError
from repositories import InMemoryDeploymentRepository
from services import CommandHealthChecker, DeploymentService, RollbackService
from storage import FilesystemContentStore, load_content_directory


def make_store(root: Path) -> FilesystemContentStore:
    return FilesystemContentStore(
        {environment: root / "envs" / environment.value for environment in Environment},
        root / "backups",
        root / "current",
    )


class FilesystemContentStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = make_store(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_write_and_read_round_trip(self) -> None:
        self.assertIsNone(self.store.read(Environment.STAGING))
        self.assertFalse(self.store.has_content(Environment.STAGING))

        self.store.write(Environment.STAGING, content("one"))

        self.assertTrue(self.store.has_content(Environment.STAGING))
        self.assertEqual(self.store.read(Environment.STAGING), content("one"))
        self.assertTrue((self.root / "envs" / "staging" / "static" / "index.html").is_file())

    def test_write_replaces_previous_files(self) -> None:
        self.store.write(Environment.STAGING, {"old.txt": b"old", "app.py": b"v1"})
        self.store.write(Environment.STAGING, {"app.py": b"v2"})

        self.assertEqual(self.store.read(Environment.STAGING), {"app.py": b"v2"})
        leftovers = [path.name for path in (self.root / "envs").iterdir() if path.name.startswith(".")]
        self.assertEqual(leftovers, [])

    def test_snapshot_restore_and_discard(self) -> None:
        self.store.write(Environment.PRODUCTION, content("one"))
        ref = self.store.snapshot(Environment.PRODUCTION)
        self.store.write(Environment.PRODUCTION, content("two"))

        self.assertTrue(Path(ref).is_relative_to(self.root / "backups" / "production"))
        self.assertEqual(self.store.restore(ref), content("one"))

        self.store.discard(ref)
        self.assertFalse(Path(ref).exists())
        with self.assertRaises(StorageError):
            self.store.restore(ref)

    def test_snapshot_of_empty_environment_fails(self) -> None:
        with self.assertRaises(StorageError):
            self.store.snapshot(Environment.STAGING)

    def test_clear_removes_environment(self) -> None:
        self.store.write(Environment.STAGING, content("one"))
        self.store.clear(Environment.STAGING)
        self.assertFalse(self.store.has_content(Environment.STAGING))
        self.store.clear(Environment.STAGING)

    def test_alias_is_a_symlink_to_the_slot(self) -> None:
        self.assertIsNone(self.store.get_alias())
        self.store.write(Environment.BLUE, content("blue"))
        self.store.write(Environment.GREEN, content("green"))

        self.store.set_alias(Environment.BLUE)
        self.assertEqual(self.store.get_alias(), Environment.BLUE)
        self.store.set_alias(Environment.GREEN)
        self.assertEqual(self.store.get_alias(), Environment.GREEN)

        live = self.root / "current"
        self.assertTrue(live.is_symlink())
        self.assertEqual(Path(os.readlink(live)), (self.root / "envs" / "green").resolve())
        self.assertEqual((live / "app.py").read_bytes(), content("green")["app.py"])

    def test_alias_rejects_non_slot_environment(self) -> None:
        with self.assertRaises(ValueError):
            self.store.set_alias(Environment.PRODUCTION)

    def test_write_rejects_paths_outside_environment(self) -> None:
        self.store.write(Environment.STAGING, content("one"))
        for name in ("../escape.txt", "/etc/passwd"):
            with self.subTest(name=name):
                with self.assertRaises(StorageError):
                    self.store.write(Environment.STAGING, {name: b"x"})
        self.assertEqual(self.store.read(Environment.STAGING), content("one"))
        self.assertFalse((self.root / "envs" / "escape.txt").exists())

    def test_load_content_directory(self) -> None:
        source = self.root / "build-output"
        (source / "static").mkdir(parents=True)
        (source / "app.py").write_bytes(b"print('one')\n")
        (source / "static" / "index.html").write_bytes(b"<h1>one</h1>")

        self.assertEqual(load_content_directory(source), content("one"))
        with self.assertRaises(StorageError):
            load_content_directory(self.root / "missing")


class FilesystemDeploymentTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:  # noqa: N802
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = make_store(self.root)

    async def asyncTearDown(self) -> None:  # noqa: N802
        self._tmp.cleanup()

    def _service(self, health_checker) -> DeploymentService:
        return DeploymentService(
            InMemoryDeploymentRepository(),
            self.store,
            health_checker,
            make_settings(BACKUP_RETENTION=2),
            RecordingNotifier(),
        )

    async def test_deploy_backup_and_rollback_on_disk(self) -> None:
        service = self._service(ScriptedHealthChecker())
        rollbacks = RollbackService(service)

        for patch in range(4):
            await service.deploy("production", content(str(patch)), f"1.0.{patch}")

        backups = await service.list_backups("production")
        self.assertEqual([backup.version for backup in backups], ["1.0.1", "1.0.2"])
        on_disk = sorted(path.name for path in (self.root / "backups" / "production").iterdir())
        self.assertEqual(len(on_disk), 2)

        await rollbacks.rollback("production")
        self.assertEqual(load_content_directory(self.root / "envs" / "production"), content("2"))

    async def test_command_health_checker_runs_inside_environment(self) -> None:
        checker = CommandHealthChecker(
            [sys.executable, "-c", "import pathlib, sys; sys.exit(0 if pathlib.Path('app.py').exists() else 1)"]
        )
        service = self._service(checker)

        record = await service.deploy("staging", content("one"), "1.0.0")
        self.assertEqual(record.status, "success")

        with self.assertRaises(HealthCheckFailed):
            await service.deploy("staging", {"README.md": b"no app"}, "1.0.1")
        self.assertEqual(self.store.read(Environment.STAGING), content("one"))

    async def test_blue_green_cutover_moves_symlink(self) -> None:
        service = self._service(ScriptedHealthChecker())
        await service.deploy_blue_green(content("one"), "1.0.0")
        await service.deploy_blue_green(content("two"), "2.0.0")

        live = self.root / "current"
        self.assertEqual((live / "app.py").read_bytes(), content("two")["app.py"])
        self.assertEqual(self.store.get_alias(), Environment.GREEN)


class CommandHealthCheckerTest(unittest.TestCase):
    def test_empty_command_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CommandHealthChecker("   ")

    def test_string_command_is_split(self) -> None:
        checker = CommandHealthChecker("curl -fsS 'http://localhost:8080/health check'")
        self.assertEqual(checker.command, ["curl", "-fsS", "http://localhost:8080/health check"])


if __name__ == "__main__":
    unittest.main()
