from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, status

from domain import LedgerError
from routers.errors import to_http_exception
from schemas import BuildRecordRequest, BuildRecordResponse, MetricsSummaryResponse
from services import BuildLedgerService, MetricsService


def build_builds_router(ledger: BuildLedgerService, metrics: MetricsService) -> APIRouter:
    router = APIRouter(prefix="/api/v1", tags=["builds"])

    @router.post(
        "/builds",
        response_model=BuildRecordResponse,
        status_code=status.HTTP_201_CREATED,
        summary="Append a finished build to the ledger.",
    )
    async def append_build(payload: BuildRecordRequest) -> BuildRecordResponse:
        try:
            record = await ledger.append(payload.model_dump(exclude_none=True))
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return BuildRecordResponse.model_validate(record.model_dump())

    @router.get(
        "/builds/recent",
        response_model=list[BuildRecordResponse],
        summary="List the most recent builds, oldest first.",
    )
    async def list_recent_builds(
        limit: int = 10,
        job_name: Optional[str] = None,
    ) -> list[BuildRecordResponse]:
        bounded_limit = max(1, min(limit, 100))
        records = await ledger.list_recent(bounded_limit, job_name=job_name)
        return [BuildRecordResponse.model_validate(record.model_dump()) for record in records]

    @router.get(
        "/metrics/summary",
        response_model=MetricsSummaryResponse,
        summary="Success rate, average duration and the recent build window.",
    )
    async def metrics_summary(
        recent: int = 5,
        job_name: Optional[str] = None,
    ) -> MetricsSummaryResponse:
        if recent < 1:
            raise HTTPException(status_code=400, detail="recent must be a positive integer.")
        summary = await metrics.summary(recent=min(recent, 100), job_name=job_name)
        return MetricsSummaryResponse.model_validate(summary.model_dump())

    return router
