from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from domain import LedgerError
from routers.errors import to_http_exception
from schemas import (
    BackupResponse,
    DeploymentRecordResponse,
    DeployRequest,
    EnvironmentsResponse,
)
from services import DeploymentService, RollbackService
from storage import ContentSet, load_content_directory


async def _load_content(source_path: str) -> ContentSet:
    source = Path(source_path)
    if not source.is_dir():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"source_path is not a directory: {source_path}",
        )
    try:
        return await asyncio.to_thread(load_content_directory, source)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


def build_deploy_router(
    deployments: DeploymentService,
    rollbacks: RollbackService,
    auth_dependency: Callable,
) -> APIRouter:
    router = APIRouter(prefix="/api/v1", tags=["deploy"])

    @router.post(
        "/deploy/blue-green",
        response_model=DeploymentRecordResponse,
        summary="Deploy into the standby slot and switch the live alias.",
    )
    async def deploy_blue_green(
        payload: DeployRequest,
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeploymentRecordResponse:
        content = await _load_content(payload.source_path)
        try:
            record = await deployments.deploy_blue_green(content, payload.version)
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return DeploymentRecordResponse.model_validate(record.model_dump())

    @router.post(
        "/deploy/{environment}",
        response_model=DeploymentRecordResponse,
        summary="Back up, overwrite and health-check an environment.",
    )
    async def deploy(
        environment: str,
        payload: DeployRequest,
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeploymentRecordResponse:
        content = await _load_content(payload.source_path)
        try:
            record = await deployments.deploy(environment, content, payload.version)
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return DeploymentRecordResponse.model_validate(record.model_dump())

    @router.post(
        "/rollback/blue-green",
        response_model=DeploymentRecordResponse,
        summary="Switch the live alias back to the previous colour.",
    )
    async def rollback_blue_green(
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeploymentRecordResponse:
        try:
            record = await rollbacks.rollback_blue_green()
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return DeploymentRecordResponse.model_validate(record.model_dump())

    @router.post(
        "/rollback/{environment}",
        response_model=DeploymentRecordResponse,
        summary="Restore the most recent backup of an environment.",
    )
    async def rollback(
        environment: str,
        user=Depends(auth_dependency),  # type: ignore[valid-type]
    ) -> DeploymentRecordResponse:
        try:
            record = await rollbacks.rollback(environment)
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return DeploymentRecordResponse.model_validate(record.model_dump())

    @router.get(
        "/environments",
        response_model=EnvironmentsResponse,
        summary="Active version, backups and blue/green alias per environment.",
    )
    async def list_environments() -> EnvironmentsResponse:
        return EnvironmentsResponse.model_validate(
            {
                "environments": await deployments.describe_environments(),
                "blue_green": await deployments.describe_blue_green_state(),
            }
        )

    @router.get(
        "/environments/{environment}/backups",
        response_model=list[BackupResponse],
        summary="Backups kept for an environment, oldest first.",
    )
    async def list_backups(environment: str) -> list[BackupResponse]:
        try:
            backups = await deployments.list_backups(environment)
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return [BackupResponse.model_validate(backup.model_dump()) for backup in backups]

    @router.get(
        "/deployments/recent",
        response_model=list[DeploymentRecordResponse],
        summary="List recent deploy and rollback attempts, oldest first.",
    )
    async def list_recent_deployments(
        limit: int = 10,
        environment: Optional[str] = None,
    ) -> list[DeploymentRecordResponse]:
        bounded_limit = max(1, min(limit, 100))
        try:
            records = await deployments.list_recent_deployments(
                bounded_limit, environment=environment
            )
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return [DeploymentRecordResponse.model_validate(record.model_dump()) for record in records]

    return router
