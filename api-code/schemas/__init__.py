from .auth import LoginRequest, LoginResponse, LogoutResponse, MeResponse
from .build import (
    BuildRecordRequest,
    BuildRecordResponse,
    BuildSummaryResponse,
    MetricsSummaryResponse,
)
from .deploy import (
    BackupResponse,
    BlueGreenStateResponse,
    DeploymentRecordResponse,
    DeployRequest,
    EnvironmentsResponse,
    EnvironmentStatusResponse,
)

__all__ = [
    "BackupResponse",
    "BlueGreenStateResponse",
    "BuildRecordRequest",
    "BuildRecordResponse",
    "BuildSummaryResponse",
    "DeploymentRecordResponse",
    "DeployRequest",
    "EnvironmentsResponse",
    "EnvironmentStatusResponse",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "MeResponse",
    "MetricsSummaryResponse",
]
