from __future__ import annotations

from typing import Optional
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from db.mongo import get_database
from domain import Environment
from models import Backup, DeploymentRecord, EnvironmentState
from repositories.build_records import LedgerAppender, MongoSequence


class DeploymentRepository:
    """MongoDB ledger of deployment attempts plus the per-environment backup registry."""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self._db = database if database is not None else get_database()
        self._records: AsyncIOMotorCollection = self._db["deployment_records"]
        self._backups: AsyncIOMotorCollection = self._db["backups"]
        self._states: AsyncIOMotorCollection = self._db["environment_state"]
        self._appender = LedgerAppender(self._records)
        self._backup_sequence = MongoSequence(self._db["counters"], "backups")

    async def ensure_indexes(self) -> None:
        await self._appender.ensure_index()
        await self._records.create_index("environment")
        await self._backups.create_index(
            [("environment", ASCENDING), ("created_at", ASCENDING), ("sequence", ASCENDING)]
        )

    async def ping(self) -> bool:
        try:
            await self._db.command("ping")
        except Exception:  # pylint: disable=broad-except
            return False
        return True

    async def append_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        stored = record.model_copy(update={"record_id": uuid4().hex})
        sequence = await self._appender.insert(stored.to_mongo())
        return stored.model_copy(update={"sequence": sequence})

    async def list_recent_deployments(
        self, limit: int, *, environment: Optional[Environment] = None
    ) -> list[DeploymentRecord]:
        query = {"environment": environment.value} if environment else {}
        cursor = self._records.find(query).sort("sequence", DESCENDING).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [DeploymentRecord.from_mongo(document) for document in reversed(documents)]

    async def add_backup(self, backup: Backup, *, keep: int) -> tuple[Backup, list[Backup]]:
        """Register ``backup`` and evict the oldest ones beyond ``keep``.

        Returns the stored backup and the evicted backups, oldest first.
        """
        sequence = await self._backup_sequence.next()
        stored = backup.model_copy(update={"backup_id": uuid4().hex, "sequence": sequence})
        await self._backups.insert_one(stored.to_mongo())

        backups = await self.list_backups(Environment(stored.environment))
        evicted = backups[: max(0, len(backups) - keep)]
        if evicted:
            await self._backups.delete_many({"_id": {"$in": [item.backup_id for item in evicted]}})
        return stored, evicted

    async def list_backups(self, environment: Environment) -> list[Backup]:
        cursor = self._backups.find({"environment": environment.value}).sort(
            [("created_at", ASCENDING), ("sequence", ASCENDING)]
        )
        return [Backup.from_mongo(document) async for document in cursor]

    async def latest_backup(self, environment: Environment) -> Optional[Backup]:
        document = await self._backups.find_one(
            {"environment": environment.value},
            sort=[("created_at", DESCENDING), ("sequence", DESCENDING)],
        )
        return Backup.from_mongo(document) if document else None

    async def set_environment_state(self, state: EnvironmentState) -> EnvironmentState:
        document = state.to_mongo()
        await self._states.replace_one({"_id": document["_id"]}, document, upsert=True)
        return state

    async def get_environment_state(self, environment: Environment) -> Optional[EnvironmentState]:
        document = await self._states.find_one({"_id": environment.value})
        return EnvironmentState.from_mongo(document) if document else None

    async def list_environment_states(self) -> list[EnvironmentState]:
        cursor = self._states.find({}).sort("_id", ASCENDING)
        return [EnvironmentState.from_mongo(document) async for document in cursor]
