from __future__ import annotations

import threading
from typing import AsyncIterator, Callable, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

from domain import Environment
from models import Backup, BuildRecord, DeploymentRecord, EnvironmentState


RecordT = TypeVar("RecordT", BuildRecord, DeploymentRecord)


class _InMemoryLedger(Generic[RecordT]):
    """Append-only list guarded by a lock so appends never interleave."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[RecordT] = []

    def append(self, record: RecordT) -> RecordT:
        with self._lock:
            stored = record.model_copy(
                update={"record_id": uuid4().hex, "sequence": len(self._items) + 1}
            )
            self._items.append(stored)
        return stored

    def snapshot(self) -> List[RecordT]:
        with self._lock:
            return list(self._items)

    def recent(self, limit: int, predicate: Optional[Callable[[RecordT], bool]] = None) -> List[RecordT]:
        items = self.snapshot()
        if predicate is not None:
            items = [item for item in items if predicate(item)]
        return items[-limit:] if limit > 0 else []


class InMemoryBuildRecordRepository:
    """Fallback build ledger used when MongoDB is unavailable."""

    def __init__(self) -> None:
        self._ledger: _InMemoryLedger[BuildRecord] = _InMemoryLedger()

    async def ensure_indexes(self) -> None:  # pragma: no cover - no-op
        return

    async def ping(self) -> bool:
        return True

    async def append(self, record: BuildRecord) -> BuildRecord:
        return self._ledger.append(record)

    async def list_recent(self, limit: int, *, job_name: Optional[str] = None) -> list[BuildRecord]:
        return self._ledger.recent(limit, _job_filter(job_name))

    async def iter_all(self, *, job_name: Optional[str] = None) -> AsyncIterator[BuildRecord]:
        predicate = _job_filter(job_name)
        for record in self._ledger.snapshot():
            if predicate is None or predicate(record):
                yield record

    async def get_latest(self) -> Optional[BuildRecord]:
        records = self._ledger.recent(1)
        return records[0] if records else None


class InMemoryDeploymentRepository:
    """Fallback deployment ledger and backup registry."""

    def __init__(self) -> None:
        self._ledger: _InMemoryLedger[DeploymentRecord] = _InMemoryLedger()
        self._lock = threading.Lock()
        self._backups: Dict[str, List[Backup]] = {}
        self._backup_sequence = 0
        self._states: Dict[str, EnvironmentState] = {}

    async def ensure_indexes(self) -> None:  # pragma: no cover - no-op
        return

    async def ping(self) -> bool:
        return True

    async def append_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        return self._ledger.append(record)

    async def list_recent_deployments(
        self, limit: int, *, environment: Optional[Environment] = None
    ) -> list[DeploymentRecord]:
        predicate = None
        if environment is not None:
            predicate = lambda record: record.environment == environment.value  # noqa: E731
        return self._ledger.recent(limit, predicate)

    async def add_backup(self, backup: Backup, *, keep: int) -> tuple[Backup, list[Backup]]:
        with self._lock:
            self._backup_sequence += 1
            stored = backup.model_copy(
                update={"backup_id": uuid4().hex, "sequence": self._backup_sequence}
            )
            bucket = self._backups.setdefault(Environment(stored.environment).value, [])
            bucket.append(stored)
            bucket.sort(key=lambda item: item.order_key)
            evicted: list[Backup] = []
            while len(bucket) > keep:
                evicted.append(bucket.pop(0))
        return stored, evicted

    async def list_backups(self, environment: Environment) -> list[Backup]:
        with self._lock:
            return list(self._backups.get(environment.value, []))

    async def latest_backup(self, environment: Environment) -> Optional[Backup]:
        backups = await self.list_backups(environment)
        return backups[-1] if backups else None

    async def set_environment_state(self, state: EnvironmentState) -> EnvironmentState:
        with self._lock:
            self._states[Environment(state.environment).value] = state
        return state

    async def get_environment_state(self, environment: Environment) -> Optional[EnvironmentState]:
        with self._lock:
            return self._states.get(environment.value)

    async def list_environment_states(self) -> list[EnvironmentState]:
        with self._lock:
            return [self._states[key] for key in sorted(self._states)]


def _job_filter(job_name: Optional[str]) -> Optional[Callable[[BuildRecord], bool]]:
    if not job_name:
        return None
    return lambda record: record.job_name == job_name
