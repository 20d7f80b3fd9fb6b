from .errors import (
    EnvironmentBusy,
    HealthCheckFailed,
    InvalidEnvironment,
    LedgerError,
    NoBackupAvailable,
    StorageError,
    ValidationError,
)
from .ledger_states import (
    BLUE_GREEN_SLOTS,
    BuildStatus,
    DeploymentAction,
    DeploymentStatus,
    Environment,
    parse_environment,
)

__all__ = [
    "BLUE_GREEN_SLOTS",
    "BuildStatus",
    "DeploymentAction",
    "DeploymentStatus",
    "Environment",
    "EnvironmentBusy",
    "HealthCheckFailed",
    "InvalidEnvironment",
    "LedgerError",
    "NoBackupAvailable",
    "StorageError",
    "ValidationError",
    "parse_environment",
]
