from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from models.deployment import DeploymentRecord


class LedgerError(Exception):
    """Base class for every error raised by the ledger services."""


class ValidationError(LedgerError):
    """A build record (or query) was rejected before any state changed."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidEnvironment(LedgerError):
    def __init__(self, environment: Any) -> None:
        self.environment = environment
        super().__init__(f"unknown environment: {environment!r}")


class HealthCheckFailed(LedgerError):
    """Deploy or rollback was reverted because the health check did not pass."""

    def __init__(self, record: "DeploymentRecord", reason: str = "health check failed") -> None:
        self.record = record
        self.reason = reason
        super().__init__(
            f"{reason} for {record.environment} version {record.version}"
        )


class NoBackupAvailable(LedgerError):
    def __init__(self, environment: Any) -> None:
        self.environment = environment
        super().__init__(f"no backup available for environment: {environment}")


class EnvironmentBusy(LedgerError):
    def __init__(self, environment: Any) -> None:
        self.environment = environment
        super().__init__(f"another deploy or rollback is in progress for: {environment}")


class StorageError(LedgerError):
    """The content store failed; not retried here."""
