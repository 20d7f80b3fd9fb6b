from __future__ import annotations

from fastapi import HTTPException, status

from domain import (
    EnvironmentBusy,
    HealthCheckFailed,
    InvalidEnvironment,
    LedgerError,
    NoBackupAvailable,
    StorageError,
    ValidationError,
)


def to_http_exception(exc: LedgerError) -> HTTPException:
    if isinstance(exc, (ValidationError, InvalidEnvironment)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NoBackupAvailable):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, EnvironmentBusy):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, HealthCheckFailed):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(exc),
                "reason": exc.reason,
                "record": exc.record.model_dump(mode="json"),
            },
        )
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
