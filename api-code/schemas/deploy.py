from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from domain import DeploymentAction, DeploymentStatus, Environment


class DeployRequest(BaseModel):
    version: str = Field(..., min_length=1, description="Semantic version of the content set.")
    source_path: str = Field(
        ...,
        min_length=1,
        description="Directory on the server holding the build output to promote.",
    )


class DeploymentRecordResponse(BaseModel):
    record_id: str = Field(..., description="Ledger identifier.")
    sequence: int = Field(..., description="Insertion position in the deployment ledger.")
    environment: Environment
    timestamp: datetime
    version: str
    status: DeploymentStatus
    action: DeploymentAction
    backup_path: Optional[str] = Field(
        default=None, description="Backup taken before the overwrite, if any."
    )
    message: Optional[str] = None


class BackupResponse(BaseModel):
    backup_id: str
    environment: Environment
    created_at: datetime
    content_ref: str
    version: Optional[str] = None


class EnvironmentStatusResponse(BaseModel):
    environment: Environment
    version: Optional[str] = Field(default=None, description="Active version, if known.")
    updated_at: Optional[datetime] = None
    has_content: bool
    backup_count: int
    live: bool = Field(..., description="True when the blue/green alias points here.")
    busy: bool = Field(..., description="True while a deploy or rollback holds the environment.")


class BlueGreenStateResponse(BaseModel):
    active_slot: Optional[str] = None
    standby_slot: Optional[str] = None
    active_version: Optional[str] = None
    next_cutover_target: str


class EnvironmentsResponse(BaseModel):
    environments: list[EnvironmentStatusResponse]
    blue_green: BlueGreenStateResponse
