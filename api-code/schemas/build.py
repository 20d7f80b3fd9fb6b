from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from domain import BuildStatus


class BuildRecordRequest(BaseModel):
    timestamp: Optional[datetime] = Field(
        default=None, description="Build completion time (ISO-8601). Defaults to now."
    )
    job_name: str = Field(..., min_length=1, description="CI job name.")
    build_number: int = Field(..., description="Build number assigned by the CI runner.")
    duration_seconds: int = Field(..., description="Wall clock duration in seconds.")
    status: BuildStatus = Field(default=BuildStatus.UNKNOWN, description="Build outcome.")
    tests_total: int = Field(default=0, description="Number of executed tests.")
    tests_passed: int = Field(default=0)
    tests_failed: int = Field(default=0)
    coverage_percent: float = Field(default=0.0, description="Line coverage, 0-100.")


class BuildRecordResponse(BaseModel):
    record_id: str = Field(..., description="Ledger identifier.")
    sequence: int = Field(..., description="Insertion position in the ledger.")
    timestamp: datetime
    job_name: str
    build_number: int
    duration_seconds: int
    status: BuildStatus
    tests_total: int
    tests_passed: int
    tests_failed: int
    coverage_percent: float


class BuildSummaryResponse(BaseModel):
    build_number: int
    job_name: str
    status: BuildStatus
    duration_seconds: int
    tests_passed: int
    tests_total: int


class MetricsSummaryResponse(BaseModel):
    total_builds: int = Field(..., description="Number of builds considered.")
    success_rate: float = Field(..., description="Successful builds, percent.")
    average_duration_seconds: int = Field(..., description="Truncated mean build duration.")
    average_coverage_percent: float
    test_pass_rate: float
    job_name: Optional[str] = None
    recent: list[BuildSummaryResponse] = Field(default_factory=list)
