from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from models.build import BuildSummary


class MetricsSummary(BaseModel):
    total_builds: int = 0
    success_rate: float = Field(default=0.0, description="Percentage of successful builds.")
    average_duration_seconds: int = 0
    average_coverage_percent: float = 0.0
    test_pass_rate: float = Field(default=0.0, description="Percentage of passed tests.")
    job_name: Optional[str] = None
    recent: list[BuildSummary] = Field(default_factory=list)
