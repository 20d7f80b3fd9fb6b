from __future__ import annotations

from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from db.mongo import get_database
from domain import StorageError
from models import BuildRecord


class MongoSequence:
    """Atomic per-collection counter kept in the ``counters`` collection.

    Values are unique and increasing but may leave gaps; use it only where
    gaps are harmless (backup tie-breaks), never for a ledger sequence.
    """

    def __init__(self, counters: AsyncIOMotorCollection, name: str):
        self._counters = counters
        self._name = name

    async def next(self) -> int:
        document = await self._counters.find_one_and_update(
            {"_id": self._name},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(document["value"])


class LedgerAppender:
    """Appends documents to a ledger collection with a gap-free ``sequence``.

    The next sequence is one past the highest stored one, and the unique index on
    ``sequence`` turns a concurrent claim of the same number into a retry. A record
    with sequence ``n`` is therefore only written once ``n - 1`` is visible, so a
    reader ordering by sequence always sees a consistent prefix.
    """

    max_attempts = 100

    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection
        self._indexed = False

    async def ensure_index(self) -> None:
        await self._collection.create_index("sequence", unique=True)
        self._indexed = True

    async def latest_sequence(self) -> int:
        document = await self._collection.find_one(
            {}, sort=[("sequence", DESCENDING)], projection={"sequence": 1}
        )
        return int(document["sequence"]) if document else 0

    async def insert(self, document: dict[str, Any]) -> int:
        if not self._indexed:
            await self.ensure_index()
        for _ in range(self.max_attempts):
            sequence = await self.latest_sequence() + 1
            try:
                await self._collection.insert_one({**document, "sequence": sequence})
            except DuplicateKeyError:
                continue
            return sequence
        raise StorageError(
            f"could not claim a sequence in {self._collection.name} after {self.max_attempts} attempts"
        )


class BuildRecordRepository:
    """MongoDB ledger of build outcomes (``build_records`` collection)."""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self._db = database if database is not None else get_database()
        self._records: AsyncIOMotorCollection = self._db["build_records"]
        self._appender = LedgerAppender(self._records)

    async def ensure_indexes(self) -> None:
        await self._appender.ensure_index()
        await self._records.create_index([("job_name", ASCENDING), ("sequence", ASCENDING)])

    async def ping(self) -> bool:
        try:
            await self._db.command("ping")
        except Exception:  # pylint: disable=broad-except
            return False
        return True

    async def append(self, record: BuildRecord) -> BuildRecord:
        stored = record.model_copy(update={"record_id": uuid4().hex})
        sequence = await self._appender.insert(stored.to_mongo())
        return stored.model_copy(update={"sequence": sequence})

    async def list_recent(self, limit: int, *, job_name: Optional[str] = None) -> list[BuildRecord]:
        cursor = self._records.find(_job_query(job_name)).sort("sequence", DESCENDING).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [BuildRecord.from_mongo(document) for document in reversed(documents)]

    async def iter_all(self, *, job_name: Optional[str] = None) -> AsyncIterator[BuildRecord]:
        # Records appended after the scan starts carry a higher sequence.
        high_water = await self._appender.latest_sequence()
        query = _job_query(job_name)
        query["sequence"] = {"$lte": high_water}
        async for document in self._records.find(query).sort("sequence", ASCENDING):
            yield BuildRecord.from_mongo(document)

    async def get_latest(self) -> Optional[BuildRecord]:
        document = await self._records.find_one({}, sort=[("sequence", DESCENDING)])
        return BuildRecord.from_mongo(document) if document else None


def _job_query(job_name: Optional[str]) -> dict[str, Any]:
    return {"job_name": job_name} if job_name else {}
