from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models import BuildSummary, MetricsSummary
from services.build_service import BuildLedgerService, require_positive_limit


@dataclass
class _BuildTotals:
    builds: int = 0
    successes: int = 0
    duration_seconds: int = 0
    coverage_percent: float = 0.0
    tests_total: int = 0
    tests_passed: int = 0

    @property
    def success_rate(self) -> float:
        if not self.builds:
            return 0.0
        return 100.0 * self.successes / self.builds

    @property
    def average_duration(self) -> int:
        if not self.builds:
            return 0
        # Durations are non-negative, so floor division truncates toward zero.
        return self.duration_seconds // self.builds

    @property
    def average_coverage(self) -> float:
        if not self.builds:
            return 0.0
        return self.coverage_percent / self.builds

    @property
    def test_pass_rate(self) -> float:
        if not self.tests_total:
            return 0.0
        return 100.0 * self.tests_passed / self.tests_total


class MetricsService:
    """Read-side statistics over the build ledger; every call is one full scan."""

    def __init__(self, ledger: BuildLedgerService):
        self.ledger = ledger

    async def _collect(self, job_name: Optional[str] = None) -> _BuildTotals:
        totals = _BuildTotals()
        async for record in self.ledger.all(job_name=job_name):
            totals.builds += 1
            totals.successes += int(record.succeeded)
            totals.duration_seconds += record.duration_seconds
            totals.coverage_percent += record.coverage_percent
            totals.tests_total += record.tests_total
            totals.tests_passed += record.tests_passed
        return totals

    async def success_rate(self, *, job_name: Optional[str] = None) -> float:
        return (await self._collect(job_name)).success_rate

    async def average_duration(self, *, job_name: Optional[str] = None) -> int:
        return (await self._collect(job_name)).average_duration

    async def average_coverage(self, *, job_name: Optional[str] = None) -> float:
        return (await self._collect(job_name)).average_coverage

    async def test_pass_rate(self, *, job_name: Optional[str] = None) -> float:
        return (await self._collect(job_name)).test_pass_rate

    async def recent_summary(self, n: int, *, job_name: Optional[str] = None) -> list[BuildSummary]:
        records = await self.ledger.list_recent(n, job_name=job_name)
        return [BuildSummary.from_record(record) for record in records]

    async def summary(self, *, recent: int = 5, job_name: Optional[str] = None) -> MetricsSummary:
        require_positive_limit(recent, "recent")
        totals = await self._collect(job_name)
        return MetricsSummary(
            total_builds=totals.builds,
            success_rate=round(totals.success_rate, 2),
            average_duration_seconds=totals.average_duration,
            average_coverage_percent=round(totals.average_coverage, 2),
            test_pass_rate=round(totals.test_pass_rate, 2),
            job_name=job_name,
            recent=await self.recent_summary(recent, job_name=job_name),
        )
