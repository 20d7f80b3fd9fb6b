from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field

from domain import Environment


class Settings(BaseModel):
    """Runtime configuration resolved from environment variables."""

    mongodb_uri: str = Field(
        default="mongodb://127.0.0.1:27017",
        alias="MONGODB_URI",
        description="MongoDB connection string",
    )
    mongodb_db_name: str = Field(
        default="build_ledger",
        alias="MONGODB_DB_NAME",
        description="MongoDB database name",
    )
    storage_backend: str = Field(
        default="filesystem",
        alias="STORAGE_BACKEND",
        description="Content store used for environments: filesystem or memory.",
    )
    deploy_root: str = Field(
        default="/opt/myapp",
        alias="DEPLOY_ROOT",
        description="Base directory that environment paths default to.",
    )
    staging_path: Optional[str] = Field(
        default=None,
        alias="STAGING_PATH",
        description="Directory served as the staging environment.",
    )
    production_path: Optional[str] = Field(
        default=None,
        alias="PRODUCTION_PATH",
        description="Directory served as the production environment.",
    )
    blue_path: Optional[str] = Field(
        default=None,
        alias="BLUE_PATH",
        description="Filesystem path for the Blue slot.",
    )
    green_path: Optional[str] = Field(
        default=None,
        alias="GREEN_PATH",
        description="Filesystem path for the Green slot.",
    )
    live_symlink: Optional[str] = Field(
        default=None,
        alias="LIVE_SYMLINK",
        description="Symlink pointing at the live blue/green slot.",
    )
    backup_root: Optional[str] = Field(
        default=None,
        alias="BACKUP_ROOT",
        description="Directory holding timestamped environment backups.",
    )
    backup_retention: int = Field(
        default=5,
        ge=1,
        alias="BACKUP_RETENTION",
        description="Number of backups kept per environment.",
    )
    health_check_command: Optional[str] = Field(
        default=None,
        alias="HEALTH_CHECK_COMMAND",
        description="Command run inside a deployed environment; exit code 0 means healthy.",
    )
    health_check_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        alias="HEALTH_CHECK_TIMEOUT_SECONDS",
        description="Seconds before a health check counts as failed.",
    )
    environment_lock_wait_seconds: float = Field(
        default=0.0,
        ge=0,
        alias="ENVIRONMENT_LOCK_WAIT_SECONDS",
        description="How long a deploy/rollback waits for a busy environment (0 fails fast).",
    )
    notify_channel: str = Field(
        default="log",
        alias="NOTIFY_CHANNEL",
        description="Notification channel: log, file or webhook.",
    )
    notify_webhook_url: Optional[str] = Field(
        default=None,
        alias="NOTIFY_WEBHOOK_URL",
        description="Webhook receiving JSON notifications (Slack compatible).",
    )
    notify_log_path: Optional[str] = Field(
        default=None,
        alias="NOTIFY_LOG_PATH",
        description="File that receives one JSON line per notification.",
    )
    notify_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        alias="NOTIFY_TIMEOUT_SECONDS",
        description="Timeout for webhook delivery.",
    )
    login_user: str = Field(
        default="operator",
        alias="LOGIN_USER",
        description="Operator allowed to trigger deploy and rollback.",
    )
    login_password: str = Field(
        default="change-me",
        alias="LOGIN_PASSWORD",
        description="Password for the operator account.",
    )
    jwt_secret_key: str = Field(
        default="change-me",
        alias="JWT_SECRET_KEY",
        description="Secret used to sign auth tokens.",
    )
    jwt_expire_minutes: int = Field(
        default=60,
        alias="JWT_EXPIRE_MINUTES",
        description="Lifetime of issued auth tokens.",
    )
    auth_cookie_name: str = Field(
        default="ledger_auth",
        alias="AUTH_COOKIE_NAME",
        description="Cookie carrying the auth token.",
    )
    auth_cookie_secure: bool = Field(
        default=False,
        alias="AUTH_COOKIE_SECURE",
        description="Mark the auth cookie as Secure.",
    )

    model_config = {"populate_by_name": True}

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(os.environ)

    def environment_paths(self) -> Dict[Environment, Path]:
        """Map every environment to the directory that holds its content."""
        root = Path(self.deploy_root)
        configured = {
            Environment.STAGING: self.staging_path,
            Environment.PRODUCTION: self.production_path,
            Environment.BLUE: self.blue_path,
            Environment.GREEN: self.green_path,
        }
        return {
            environment: Path(value) if value else root / environment.value
            for environment, value in configured.items()
        }

    def resolved_backup_root(self) -> Path:
        return Path(self.backup_root) if self.backup_root else Path(self.deploy_root) / "backups"

    def resolved_live_symlink(self) -> Path:
        return Path(self.live_symlink) if self.live_symlink else Path(self.deploy_root) / "current"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance built from environment variables."""
    return Settings.from_env()
