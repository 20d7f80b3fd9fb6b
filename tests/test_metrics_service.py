from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_PATH = Path(__file__).resolve().parent
API_CODE_PATH = TESTS_PATH.parent / "api-code"
for path in (API_CODE_PATH, TESTS_PATH):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import fakes  # noqa: F401

from domain import BuildStatus, ValidationError
from models import BuildRecord
from repositories import InMemoryBuildRecordRepository
from services import BuildLedgerService, MetricsService


def record(number: int, status: BuildStatus, duration: int, **extra) -> BuildRecord:
    values = {
        "job_name": extra.pop("job_name", "calculator-pipeline"),
        "build_number": number,
        "duration_seconds": duration,
        "status": status,
        "tests_total": 10,
        "tests_passed": 8,
        "tests_failed": 2,
        "coverage_percent": 80.0,
    }
    values.update(extra)
    return BuildRecord(**values)


class MetricsServiceTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:  # noqa: N802
        self.ledger = BuildLedgerService(InMemoryBuildRecordRepository())
        self.metrics = MetricsService(self.ledger)

    async def _seed_lab_history(self) -> None:
        statuses = [BuildStatus.SUCCESS, BuildStatus.SUCCESS, BuildStatus.FAILURE, BuildStatus.SUCCESS]
        for number, (status, duration) in enumerate(zip(statuses, [10, 20, 30, 40]), start=1):
            await self.ledger.append(record(number, status, duration))

    async def test_success_rate_and_average_duration(self) -> None:
        await self._seed_lab_history()
        self.assertEqual(await self.metrics.success_rate(), 75.0)
        self.assertEqual(await self.metrics.average_duration(), 25)

    async def test_empty_store_reports_zero(self) -> None:
        self.assertEqual(await self.metrics.success_rate(), 0)
        self.assertEqual(await self.metrics.average_duration(), 0)
        self.assertEqual(await self.metrics.average_coverage(), 0.0)
        self.assertEqual(await self.metrics.test_pass_rate(), 0.0)
        self.assertEqual(await self.metrics.recent_summary(5), [])

    async def test_average_duration_truncates(self) -> None:
        await self.ledger.append(record(1, BuildStatus.SUCCESS, 10))
        await self.ledger.append(record(2, BuildStatus.SUCCESS, 11))
        self.assertEqual(await self.metrics.average_duration(), 10)

    async def test_failures_never_increase_success_rate(self) -> None:
        await self._seed_lab_history()
        previous = await self.metrics.success_rate()
        for number in range(5, 9):
            await self.ledger.append(record(number, BuildStatus.FAILURE, 5))
            current = await self.metrics.success_rate()
            self.assertLess(current, previous)
            previous = current

    async def test_unstable_and_unknown_are_not_successes(self) -> None:
        await self.ledger.append(record(1, BuildStatus.SUCCESS, 5))
        await self.ledger.append(record(2, BuildStatus.UNSTABLE, 5))
        await self.ledger.append(record(3, BuildStatus.UNKNOWN, 5))
        await self.ledger.append(record(4, BuildStatus.SUCCESS, 5))
        self.assertEqual(await self.metrics.success_rate(), 50.0)

    async def test_average_duration_is_idempotent(self) -> None:
        await self._seed_lab_history()
        first = await self.metrics.average_duration()
        second = await self.metrics.average_duration()
        self.assertEqual(first, second)

    async def test_recent_summary_projects_recent_window(self) -> None:
        await self._seed_lab_history()
        summary = await self.metrics.recent_summary(2)
        self.assertEqual([item.build_number for item in summary], [3, 4])
        self.assertEqual(summary[0].status, BuildStatus.FAILURE)
        self.assertEqual(summary[0].duration_seconds, 30)
        self.assertEqual((summary[1].tests_passed, summary[1].tests_total), (8, 10))

    async def test_recent_summary_requires_positive_n(self) -> None:
        with self.assertRaises(ValidationError):
            await self.metrics.recent_summary(0)

    async def test_coverage_and_test_pass_rate(self) -> None:
        await self.ledger.append(record(1, BuildStatus.SUCCESS, 5, coverage_percent=70.0))
        await self.ledger.append(
            record(2, BuildStatus.SUCCESS, 5, coverage_percent=90.0, tests_total=10, tests_passed=10, tests_failed=0)
        )
        self.assertEqual(await self.metrics.average_coverage(), 80.0)
        self.assertEqual(await self.metrics.test_pass_rate(), 90.0)

    async def test_job_filter_limits_aggregation(self) -> None:
        await self.ledger.append(record(1, BuildStatus.SUCCESS, 10, job_name="api"))
        await self.ledger.append(record(1, BuildStatus.FAILURE, 50, job_name="web"))
        self.assertEqual(await self.metrics.success_rate(job_name="api"), 100.0)
        self.assertEqual(await self.metrics.average_duration(job_name="web"), 50)
        self.assertEqual(await self.metrics.success_rate(), 50.0)

    async def test_summary_bundles_aggregates(self) -> None:
        await self._seed_lab_history()
        summary = await self.metrics.summary(recent=3)
        self.assertEqual(summary.total_builds, 4)
        self.assertEqual(summary.success_rate, 75.0)
        self.assertEqual(summary.average_duration_seconds, 25)
        self.assertEqual(summary.average_coverage_percent, 80.0)
        self.assertEqual(summary.test_pass_rate, 80.0)
        self.assertEqual([item.build_number for item in summary.recent], [2, 3, 4])


if __name__ == "__main__":
    unittest.main()
