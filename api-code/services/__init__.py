from .auth_service import AuthService
from .build_service import BuildLedgerService
from .deployment_service import DeploymentService, EnvironmentLocks
from .health_check import (
    CommandHealthChecker,
    HealthChecker,
    StaticHealthChecker,
    build_health_checker,
)
from .metrics_service import MetricsService
from .notifier import Notifier
from .rollback_service import RollbackService

__all__ = [
    "AuthService",
    "BuildLedgerService",
    "CommandHealthChecker",
    "DeploymentService",
    "EnvironmentLocks",
    "HealthChecker",
    "MetricsService",
    "Notifier",
    "RollbackService",
    "StaticHealthChecker",
    "build_health_checker",
]
