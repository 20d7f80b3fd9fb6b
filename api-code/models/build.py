from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from domain import BuildStatus, ValidationError
from models.common import MongoModel, ensure_utc, utc_now


class BuildRecord(MongoModel):
    """Outcome of one completed build attempt, as reported by the CI runner.

    Field types are coerced on construction; the ledger invariants (non-negative
    counts, coverage range, test arithmetic) are enforced by
    :meth:`check_invariants` when the record is appended so that a malformed
    record is rejected with :class:`domain.ValidationError`.
    """

    record_id: Optional[str] = Field(
        default=None, alias="_id", description="Assigned by the ledger on append."
    )
    sequence: Optional[int] = Field(
        default=None, description="Insertion position assigned by the ledger."
    )
    timestamp: datetime = Field(default_factory=utc_now, description="Build completion time.")
    job_name: str = Field(..., min_length=1, description="CI job that produced the build.")
    build_number: int = Field(..., description="Caller supplied, increasing per job.")
    duration_seconds: int = Field(..., description="Wall clock duration of the build.")
    status: BuildStatus = Field(default=BuildStatus.UNKNOWN)
    tests_total: int = Field(default=0)
    tests_passed: int = Field(default=0)
    tests_failed: int = Field(default=0)
    coverage_percent: float = Field(default=0.0)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def check_invariants(self) -> None:
        if self.duration_seconds < 0:
            raise ValidationError(
                f"duration_seconds must be >= 0 (got {self.duration_seconds})",
                field="duration_seconds",
            )
        for name in ("tests_total", "tests_passed", "tests_failed"):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} must be >= 0", field=name)
        if self.tests_passed + self.tests_failed > self.tests_total:
            raise ValidationError(
                "tests_passed + tests_failed exceeds tests_total "
                f"({self.tests_passed} + {self.tests_failed} > {self.tests_total})",
                field="tests_total",
            )
        if not 0 <= self.coverage_percent <= 100:
            raise ValidationError(
                f"coverage_percent must be within [0, 100] (got {self.coverage_percent})",
                field="coverage_percent",
            )

    @property
    def succeeded(self) -> bool:
        return self.status == BuildStatus.SUCCESS

    @classmethod
    def from_mongo(cls, document: dict[str, Any]) -> "BuildRecord":
        if not document:
            raise ValueError("Mongo document is empty; cannot build BuildRecord.")
        return cls.model_validate(document)


class BuildSummary(MongoModel):
    """Projection used by the recent-builds view."""

    build_number: int
    job_name: str
    status: BuildStatus
    duration_seconds: int
    tests_passed: int
    tests_total: int

    @classmethod
    def from_record(cls, record: BuildRecord) -> "BuildSummary":
        return cls(
            build_number=record.build_number,
            job_name=record.job_name,
            status=record.status,
            duration_seconds=record.duration_seconds,
            tests_passed=record.tests_passed,
            tests_total=record.tests_total,
        )
