"""Permanently purge documents from ``logs_archived``."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from catlogs.cache import ARCHIVED_LOGS_PREFIX
from catlogs.cache import QueryCache
from catlogs.config import JobConfig
from catlogs.jobs.progress import ProgressStore
from catlogs.jobs.runner import JobRunner
from catlogs.jobs.schemas import JobKind
from catlogs.jobs.schemas import JobProgress
from catlogs.logs.backend import TIMESTAMP_FIELD
from catlogs.logs.backend import count
from catlogs.logs.backend import where
from catlogs.logs.dates import parse_instant
from catlogs.models.records import ARCHIVE_COLLECTION
from catlogs.models.schemas import InvalidParametersError

logger = logging.getLogger(__name__)

NOTHING_TO_DELETE = "No logs found to delete"


class DeletionJob:
    """Background job deleting all archived logs, or those before a date.

    Mirrors ``ArchivalJob`` but only deletes, in batches of the Firestore
    maximum.  Afterwards every ``archived_logs:*`` cache entry is dropped so
    purged records are not served from cache.
    """

    def __init__(
        self,
        db: Any,
        runner: JobRunner,
        *,
        cache: QueryCache | None = None,
        config: JobConfig | None = None,
    ) -> None:
        self._db = db
        self._runner = runner
        self._cache = cache
        self._config = config or JobConfig()

    @property
    def _progress(self) -> ProgressStore:
        return self._runner.progress

    async def start(
        self,
        *,
        before_date: str | datetime | None = None,
        delete_all: bool = False,
    ) -> str:
        """Validate the request, launch the job and return its operation id."""
        if not delete_all and not before_date:
            raise InvalidParametersError("Missing before_date parameter or delete_all flag")
        before = None
        if not delete_all:
            assert before_date is not None
            before = parse_instant(before_date, field="before_date")
        logger.info(
            "Deleting archived logs (delete_all=%s, before=%s)",
            delete_all,
            before.isoformat() if before else None,
        )
        return await self._runner.launch(
            JobKind.delete,
            lambda operation_id: self.run(operation_id, before=before),
        )

    def _targets(self, before: datetime | None) -> Any:
        query = self._db.collection(ARCHIVE_COLLECTION)
        if before is not None:
            query = where(query, TIMESTAMP_FIELD, "<", before)
        return query

    async def run(self, operation_id: str, *, before: datetime | None = None) -> JobProgress:
        """Delete the targeted archived logs, reporting progress."""
        query = self._targets(before)
        total = await count(query)
        logger.info("Found %d archived logs to delete", total)

        if total == 0:
            result = JobProgress.finished(
                operation_id,
                JobKind.delete,
                total=0,
                processed=0,
                message=NOTHING_TO_DELETE,
            )
            await self._progress.write(result)
            return result

        await self._progress.write(
            JobProgress.running(operation_id, JobKind.delete, total=total, processed=0)
        )

        processed = 0
        batch_size = self._config.delete_batch_size
        # Bounded by the initial count so a concurrent archival run is not chased.
        while processed < total:
            docs = await query.limit(batch_size).get()
            if not docs:
                break
            batch = self._db.batch()
            for doc in docs:
                batch.delete(doc.reference)
            await batch.commit()

            processed += len(docs)
            progress = JobProgress.running(
                operation_id, JobKind.delete, total=total, processed=processed
            )
            logger.info(
                "Deleted batch of %d archived logs. Progress: %d/%d (%d%%)",
                len(docs),
                processed,
                total,
                progress.percentage,
            )
            await self._progress.write(progress)

        if self._cache is not None:
            await self._cache.invalidate(ARCHIVED_LOGS_PREFIX)

        result = JobProgress.finished(
            operation_id,
            JobKind.delete,
            total=total,
            processed=processed,
            message=f"Successfully deleted {processed} archived logs",
        )
        await self._progress.write(result)
        logger.info("Delete operation %s completed: %d logs", operation_id, processed)
        return result
