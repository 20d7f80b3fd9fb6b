from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from domain import ValidationError
from models import BuildRecord
from repositories import BuildRecordRepository, InMemoryBuildRecordRepository
from services.notifier import Notifier


logger = logging.getLogger("ledger.builds")


def require_positive_limit(value: Any, name: str = "n") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer (got {value!r})", field=name)
    return value


class BuildLedgerService:
    """Append-only ledger of build outcomes reported by the CI runner."""

    def __init__(
        self,
        repository: Union[BuildRecordRepository, InMemoryBuildRecordRepository],
        notifier: Optional[Notifier] = None,
    ):
        self.repository = repository
        self.notifier = notifier

    async def append(self, record: Union[BuildRecord, Mapping[str, Any]]) -> BuildRecord:
        """Validate and append ``record``; returns the stored copy with its id.

        Raises :class:`domain.ValidationError` before anything is written when the
        record breaks a ledger invariant.
        """
        build = self._coerce(record)
        build.check_invariants()
        stored = await self.repository.append(build)
        logger.info(
            "Recorded build job=%s build=%s status=%s duration=%ss sequence=%s",
            stored.job_name,
            stored.build_number,
            stored.status,
            stored.duration_seconds,
            stored.sequence,
        )
        if self.notifier is not None:
            await self.notifier.notify(
                stored.status,
                (
                    f"build finished in {stored.duration_seconds}s, "
                    f"{stored.tests_passed}/{stored.tests_total} tests passed, "
                    f"coverage {stored.coverage_percent:g}%"
                ),
                stored.job_name,
                stored.build_number,
            )
        return stored

    async def list_recent(self, n: int, *, job_name: Optional[str] = None) -> list[BuildRecord]:
        """Last ``n`` records, oldest first; fewer when the ledger is shorter."""
        limit = require_positive_limit(n)
        return await self.repository.list_recent(limit, job_name=job_name)

    def all(self, *, job_name: Optional[str] = None) -> AsyncIterator[BuildRecord]:
        """Fresh insertion-ordered scan; appends made during the scan are not included."""
        return self.repository.iter_all(job_name=job_name)

    @staticmethod
    def _coerce(record: Union[BuildRecord, Mapping[str, Any]]) -> BuildRecord:
        if isinstance(record, BuildRecord):
            return record
        if not isinstance(record, Mapping):
            raise ValidationError(f"unsupported build record payload: {type(record).__name__}")
        try:
            return BuildRecord.model_validate(dict(record))
        except PydanticValidationError as exc:
            raise ValidationError(f"malformed build record: {exc}") from exc
