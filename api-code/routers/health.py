from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from services import BuildLedgerService, DeploymentService


def build_health_router(ledger: BuildLedgerService, deployments: DeploymentService) -> APIRouter:
    router = APIRouter()

    @router.get("/healthz")
    async def healthcheck() -> Dict[str, Any]:
        builds_ok = await ledger.repository.ping()
        deployments_ok = await deployments.repository.ping()

        issues = []
        if not builds_ok:
            issues.append("Build ledger unreachable.")
        if not deployments_ok:
            issues.append("Deployment ledger unreachable.")

        latest_build = None
        latest_deployment = None
        if builds_ok and deployments_ok:
            latest_build = await ledger.repository.get_latest()
            recent = await deployments.list_recent_deployments(1)
            latest_deployment = recent[-1] if recent else None

        return {
            "status": "healthy" if not issues else "degraded",
            "last_build": (
                {"job_name": latest_build.job_name, "build_number": latest_build.build_number}
                if latest_build
                else None
            ),
            "last_deployment": (
                latest_deployment.model_dump(mode="json") if latest_deployment else None
            ),
            "blue_green": await deployments.describe_blue_green_state(),
            "issues": issues,
        }

    return router
