from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from domain import DeploymentAction, DeploymentStatus, Environment, ValidationError
from models.common import MongoModel, ensure_utc, utc_now


SEMVER_PATTERN = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)


def validate_version(version: str) -> str:
    cleaned = (version or "").strip()
    if not SEMVER_PATTERN.match(cleaned):
        raise ValidationError(
            f"version must be a semantic version string (got {version!r})", field="version"
        )
    return cleaned


class DeploymentRecord(MongoModel):
    record_id: Optional[str] = Field(default=None, alias="_id")
    sequence: Optional[int] = Field(default=None)
    environment: Environment = Field(..., description="Physical environment that was targeted.")
    timestamp: datetime = Field(default_factory=utc_now)
    version: str = Field(..., description="Semantic version of the promoted content.")
    status: DeploymentStatus = Field(...)
    action: DeploymentAction = Field(default=DeploymentAction.DEPLOY)
    backup_path: Optional[str] = Field(
        default=None, description="Backup taken before the overwrite, when there was one."
    )
    message: Optional[str] = Field(default=None, description="Failure detail.")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_mongo(cls, document: dict[str, Any]) -> "DeploymentRecord":
        if not document:
            raise ValueError("Mongo document is empty; cannot build DeploymentRecord.")
        return cls.model_validate(document)


class Backup(MongoModel):
    """Snapshot of an environment's content taken right before it was overwritten."""

    backup_id: Optional[str] = Field(default=None, alias="_id")
    sequence: Optional[int] = Field(default=None, description="Tie-break for equal created_at.")
    environment: Environment
    created_at: datetime = Field(default_factory=utc_now)
    content_ref: str = Field(..., description="Content store reference of the snapshot.")
    version: Optional[str] = Field(default=None, description="Version the snapshot held.")

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def order_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.sequence or 0)

    @classmethod
    def from_mongo(cls, document: dict[str, Any]) -> "Backup":
        return cls.model_validate(document)


class EnvironmentState(MongoModel):
    """Version currently active in an environment."""

    environment: Environment = Field(..., alias="_id")
    version: str
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("updated_at")
    @classmethod
    def _updated_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_mongo(cls, document: dict[str, Any]) -> "EnvironmentState":
        return cls.model_validate(document)
