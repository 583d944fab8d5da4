"""Deletion job tests against the Firestore emulator and Redis."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from catlogs.config import JobConfig
from catlogs.jobs import DeletionJob
from catlogs.jobs import JobKind
from catlogs.jobs import JobStatus
from catlogs.models import ARCHIVE_COLLECTION
from catlogs.models import InvalidParametersError
from catlogs.models import LogFilterOptions


@pytest.fixture()
def deletion(firestore_client, runner, cache) -> DeletionJob:
    return DeletionJob(firestore_client, runner, cache=cache)


async def _finish(progress_store, operation_id: str):
    return await progress_store.wait_for_completion(
        JobKind.delete, operation_id, timeout=30
    )


class TestDeleteBefore:
    async def test_only_older_records_removed(self, deletion, progress_store, seed):
        now = datetime.now(timezone.utc)
        for i in range(3):
            await seed.archived(f"old-{i}", timestamp=now - timedelta(days=400 + i))
        for i in range(2):
            await seed.archived(f"new-{i}", timestamp=now - timedelta(days=10 + i))

        operation_id = await deletion.start(
            before_date=(now - timedelta(days=365)).isoformat()
        )
        result = await _finish(progress_store, operation_id)

        assert result.status is JobStatus.completed
        assert result.total == 3
        assert result.processed == 3
        assert result.message == "Successfully deleted 3 archived logs"
        assert await seed.ids(ARCHIVE_COLLECTION) == {"new-0", "new-1"}

    async def test_nothing_to_delete(self, deletion, progress_store, seed):
        now = datetime.now(timezone.utc)
        await seed.archived("recent", timestamp=now - timedelta(days=1))

        operation_id = await deletion.start(
            before_date=(now - timedelta(days=30)).isoformat()
        )
        result = await _finish(progress_store, operation_id)

        assert result.total == 0
        assert result.percentage == 100
        assert result.message == "No logs found to delete"
        assert await seed.ids(ARCHIVE_COLLECTION) == {"recent"}


class TestDeleteAll:
    async def test_empties_archive_and_invalidates_cache(
        self,
        firestore_client,
        runner,
        cache,
        progress_store,
        query_service,
        redis_client,
        seed,
    ):
        now = datetime.now(timezone.utc)
        for i in range(5):
            await seed.archived(f"arch-{i}", timestamp=now - timedelta(days=i + 1))

        cached = await query_service.get_archived_logs(LogFilterOptions())
        assert len(cached.logs) == 5
        assert await redis_client.keys("archived_logs:*")

        job = DeletionJob(
            firestore_client, runner, cache=cache, config=JobConfig(delete_batch_size=2)
        )
        result = await _finish(progress_store, await job.start(delete_all=True))

        assert result.processed == 5
        assert await seed.ids(ARCHIVE_COLLECTION) == set()
        assert await redis_client.keys("archived_logs:*") == []

        # Same parameters as the cached call: must not serve the stale page.
        after = await query_service.get_archived_logs(LogFilterOptions())
        assert after.logs == []

        snapshots = [s for s in progress_store.snapshots if s.kind is JobKind.delete]
        batches = [s.processed for s in snapshots if s.status is JobStatus.running]
        assert batches == [0, 2, 4, 5]

    async def test_delete_all_ignores_before_date(self, deletion, progress_store, seed):
        now = datetime.now(timezone.utc)
        await seed.archived("a", timestamp=now - timedelta(days=1))
        await seed.archived("b", timestamp=now - timedelta(days=500))

        operation_id = await deletion.start(
            before_date=(now - timedelta(days=365)).isoformat(), delete_all=True
        )
        result = await _finish(progress_store, operation_id)

        assert result.processed == 2
        assert await seed.ids(ARCHIVE_COLLECTION) == set()


class TestValidation:
    async def test_requires_date_or_flag(self, deletion, runner):
        with pytest.raises(InvalidParametersError, match="before_date"):
            await deletion.start()
        assert runner.running() == []

    async def test_rejects_unparseable_date(self, deletion):
        with pytest.raises(InvalidParametersError):
            await deletion.start(before_date="yesterday-ish")
