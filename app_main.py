from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


PROJECT_ROOT = Path(__file__).resolve().parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from db.mongo import close_mongo_client  # noqa: E402
from env_loader import load_local_env  # noqa: E402
from repositories import (  # noqa: E402
    BuildRecordRepository,
    DeploymentRepository,
    InMemoryBuildRecordRepository,
    InMemoryDeploymentRepository,
)
from routers import (  # noqa: E402
    build_auth_router,
    build_builds_router,
    build_deploy_router,
    build_health_router,
)
from services import (  # noqa: E402
    AuthService,
    BuildLedgerService,
    DeploymentService,
    MetricsService,
    Notifier,
    RollbackService,
    build_health_checker,
)
from settings import Settings, get_settings  # noqa: E402
from storage import ContentStore, FilesystemContentStore, InMemoryContentStore  # noqa: E402


load_local_env()
settings = get_settings()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("ledger")


def build_content_store(config: Settings) -> ContentStore:
    backend = config.storage_backend.strip().lower()
    if backend == "memory":
        logger.warning("STORAGE_BACKEND=memory; deployed content is lost on restart.")
        return InMemoryContentStore()
    if backend != "filesystem":
        raise RuntimeError(f"Unsupported STORAGE_BACKEND '{config.storage_backend}'.")
    return FilesystemContentStore(
        config.environment_paths(),
        config.resolved_backup_root(),
        config.resolved_live_symlink(),
    )


app = FastAPI(
    title="Build Ledger & Deploy Controller",
    version="0.1.0",
    description="Build metrics ledger with backup-safe promotion, blue/green cutover and rollback.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

notifier = Notifier.from_settings(settings)
build_repository: Union[BuildRecordRepository, InMemoryBuildRecordRepository] = BuildRecordRepository()
deployment_repository: Union[DeploymentRepository, InMemoryDeploymentRepository] = DeploymentRepository()

build_ledger = BuildLedgerService(build_repository, notifier)
metrics_service = MetricsService(build_ledger)
deployment_service = DeploymentService(
    deployment_repository,
    build_content_store(settings),
    build_health_checker(settings),
    settings,
    notifier,
)
rollback_service = RollbackService(deployment_service)
auth_service = AuthService(settings)
auth_dependency = auth_service.build_auth_dependency()

app.include_router(build_auth_router(auth_service))
app.include_router(build_builds_router(build_ledger, metrics_service))
app.include_router(build_deploy_router(deployment_service, rollback_service, auth_dependency))
app.include_router(build_health_router(build_ledger, deployment_service))


@app.on_event("startup")
async def on_startup() -> None:
    global build_repository, deployment_repository  # pylint: disable=global-statement
    try:
        await build_repository.ensure_indexes()
        await deployment_repository.ensure_indexes()
        logger.info("MongoDB repositories initialized successfully.")
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning(
            "MongoDB unavailable (%s); falling back to in-memory ledgers.", exc
        )
        build_repository = InMemoryBuildRecordRepository()
        deployment_repository = InMemoryDeploymentRepository()
        build_ledger.repository = build_repository
        deployment_service.repository = deployment_repository


@app.on_event("shutdown")
async def on_shutdown() -> None:
    close_mongo_client()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app_main:app", host="0.0.0.0", port=9001, reload=True)
