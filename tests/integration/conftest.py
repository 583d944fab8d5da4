"""Integration fixtures — services wired to Redis and the Firestore emulator."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
from fastmcp import Client

from catlogs.cache import QueryCache
from catlogs.jobs import JobProgress
from catlogs.jobs import JobRunner
from catlogs.jobs import ProgressStore
from catlogs.logs import LogQueryService
from catlogs.models import ACTIVITY_COLLECTION
from catlogs.models import ARCHIVE_COLLECTION
from catlogs.models import LOGS_COLLECTION


class Seeder:
    """Writes raw documents with chosen ids straight into Firestore."""

    def __init__(self, db: Any) -> None:
        self.db = db

    async def log(
        self,
        doc_id: str,
        *,
        timestamp: datetime,
        level: str | None = "info",
        message: str = "",
        **extra: Any,
    ) -> None:
        data = {
            "timestamp": timestamp,
            "level": level,
            "message": message or f"log {doc_id}",
            "details": {},
            "userId": None,
            "userEmail": None,
            "actionType": None,
        }
        data.update(extra)
        await self.db.collection(LOGS_COLLECTION).document(doc_id).set(data)

    async def activity(
        self,
        doc_id: str,
        *,
        timestamp: datetime,
        action: str = "update",
        target: str = "cat",
        target_id: str = "cat-1",
        details: dict | None = None,
        **extra: Any,
    ) -> None:
        data = {
            "action": action,
            "target": target,
            "targetId": target_id,
            "details": details or {},
            "timestamp": timestamp,
            "userId": "u1",
            "userEmail": "staff@example.org",
        }
        data.update(extra)
        await self.db.collection(ACTIVITY_COLLECTION).document(doc_id).set(data)

    async def archived(
        self,
        doc_id: str,
        *,
        timestamp: datetime,
        level: str = "info",
        message: str = "",
        action_type: str | None = None,
        source: str = "logs",
        **extra: Any,
    ) -> None:
        data = {
            "timestamp": timestamp,
            "level": level,
            "message": message or f"archived {doc_id}",
            "details": {},
            "actionType": action_type,
            "archivedAt": timestamp,
            "sourceCollection": source,
        }
        data.update(extra)
        await self.db.collection(ARCHIVE_COLLECTION).document(doc_id).set(data)

    async def ids(self, collection: str) -> set[str]:
        docs = await self.db.collection(collection).get()
        return {doc.id for doc in docs}

    async def get(self, collection: str, doc_id: str) -> dict | None:
        snapshot = await self.db.collection(collection).document(doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None


class RecordingProgressStore(ProgressStore):
    """Progress store that also keeps every snapshot written, in order."""

    def __init__(self, redis: Any) -> None:
        super().__init__(redis)
        self.snapshots: list[JobProgress] = []

    async def write(self, progress: JobProgress) -> None:
        self.snapshots.append(progress)
        await super().write(progress)


@pytest.fixture()
def seed(firestore_client) -> Seeder:
    return Seeder(firestore_client)


@pytest.fixture()
def cache(redis_client) -> QueryCache:
    return QueryCache(redis_client)


@pytest.fixture()
def progress_store(redis_client) -> RecordingProgressStore:
    return RecordingProgressStore(redis_client)


@pytest.fixture()
async def runner(progress_store):
    job_runner = JobRunner(progress_store)
    yield job_runner
    await job_runner.drain()


@pytest.fixture()
def query_service(firestore_client, cache) -> LogQueryService:
    return LogQueryService(firestore_client, cache)


@pytest.fixture()
async def mcp_client(redis_container, firestore_client):
    """Yield a FastMCP Client wired to the catlogs server."""
    from catlogs.server import configure
    from catlogs.server import mcp
    from catlogs.server import shutdown

    await configure(redis_url=redis_container, firestore_client=firestore_client)

    async with Client(mcp) as client:
        yield client

    await shutdown()
