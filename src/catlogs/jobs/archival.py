"""Move aged records from the live collections into ``logs_archived``.

System logs are processed first, then activity records.  Activity records
with ``action == "view"`` feed the view-count analytics and are never
archived.  Each batch is a single Firestore ``WriteBatch`` holding both
the archive write and the source delete, so a crash between batches never
duplicates or loses a record.  Batches run strictly one after another.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from catlogs.cache import ALL_QUERY_PREFIXES
from catlogs.cache import QueryCache
from catlogs.config import CacheConfig
from catlogs.config import JobConfig
from catlogs.jobs.progress import ProgressStore
from catlogs.jobs.runner import JobRunner
from catlogs.jobs.schemas import JobKind
from catlogs.jobs.schemas import JobProgress
from catlogs.logs.backend import ASCENDING
from catlogs.logs.backend import SERVER_TIMESTAMP
from catlogs.logs.backend import TIMESTAMP_FIELD
from catlogs.logs.backend import count
from catlogs.logs.backend import where
from catlogs.logs.dates import parse_instant
from catlogs.models.records import ARCHIVE_COLLECTION
from catlogs.models.records import SourceCollection
from catlogs.models.records import VIEW_ACTION
from catlogs.models.records import archived_document

logger = logging.getLogger(__name__)

NOTHING_TO_ARCHIVE = "No logs found to archive"


class ArchivalJob:
    """Background job archiving every record older than a cutoff."""

    def __init__(
        self,
        db: Any,
        runner: JobRunner,
        *,
        cache: QueryCache | None = None,
        config: JobConfig | None = None,
        cache_config: CacheConfig | None = None,
    ) -> None:
        self._db = db
        self._runner = runner
        self._cache = cache
        self._config = config or JobConfig()
        self._cache_config = cache_config or CacheConfig()

    @property
    def _progress(self) -> ProgressStore:
        return self._runner.progress

    async def start(self, cutoff: str | datetime) -> str:
        """Validate *cutoff*, launch the job and return its operation id."""
        cutoff_at = parse_instant(cutoff, field="cutoff")
        logger.info("Archiving logs older than %s", cutoff_at.isoformat())
        return await self._runner.launch(
            JobKind.archive,
            lambda operation_id: self.run(operation_id, cutoff_at),
        )

    # ------------------------------------------------------------------
    # Work
    # ------------------------------------------------------------------

    def _aged(self, source: SourceCollection, cutoff: datetime) -> Any:
        return where(self._db.collection(source.value), TIMESTAMP_FIELD, "<", cutoff)

    async def count_candidates(self, cutoff: datetime) -> tuple[int, int]:
        """Return ``(logs, activity)`` counts of archivable records."""
        logs_count = await count(self._aged(SourceCollection.logs, cutoff))
        activity_aged = self._aged(SourceCollection.activity, cutoff)
        # Counting views separately keeps every query to a single inequality.
        activity_count = await count(activity_aged) - await count(
            where(activity_aged, "action", "==", VIEW_ACTION)
        )
        return logs_count, max(activity_count, 0)

    async def run(self, operation_id: str, cutoff: datetime) -> JobProgress:
        """Archive everything older than *cutoff*, reporting progress."""
        logs_count, activity_count = await self.count_candidates(cutoff)
        total = logs_count + activity_count
        logger.info(
            "Found %d system logs and %d activity logs to archive (views excluded)",
            logs_count,
            activity_count,
        )

        if total == 0:
            result = JobProgress.finished(
                operation_id,
                JobKind.archive,
                total=0,
                processed=0,
                message=NOTHING_TO_ARCHIVE,
            )
            await self._progress.write(result)
            return result

        await self._progress.write(
            JobProgress.running(operation_id, JobKind.archive, total=total, processed=0)
        )

        processed = await self._move(
            SourceCollection.logs, cutoff, operation_id, total, processed=0
        )
        system_processed = processed
        processed = await self._move(
            SourceCollection.activity, cutoff, operation_id, total, processed=processed
        )
        logger.info(
            "Archive %s done: system=%d activity=%d total=%d",
            operation_id,
            system_processed,
            processed - system_processed,
            processed,
        )

        await self._invalidate_caches()

        result = JobProgress.finished(
            operation_id,
            JobKind.archive,
            total=total,
            processed=processed,
            message=f"Successfully archived {processed} logs",
        )
        await self._progress.write(result)
        return result

    async def _move(
        self,
        source: SourceCollection,
        cutoff: datetime,
        operation_id: str,
        total: int,
        *,
        processed: int,
    ) -> int:
        """Move every aged record of *source*; return the updated count."""
        archive = self._db.collection(ARCHIVE_COLLECTION)
        query = self._aged(source, cutoff).order_by(TIMESTAMP_FIELD, direction=ASCENDING)
        batch_size = self._config.archive_batch_size
        skip_views = source is SourceCollection.activity

        last = None
        while True:
            page = query.limit(batch_size)
            if last is not None:
                # Skipped view records stay behind, so resume after the scan position.
                page = page.start_after(last)
            docs = await page.get()
            if not docs:
                break
            last = docs[-1]

            batch = self._db.batch()
            moved = 0
            for doc in docs:
                data = doc.to_dict() or {}
                if skip_views and data.get("action") == VIEW_ACTION:
                    continue
                batch.set(
                    archive.document(doc.id),
                    archived_document(data, source, SERVER_TIMESTAMP),
                )
                batch.delete(doc.reference)
                moved += 1

            if not moved:
                continue
            await batch.commit()
            processed += moved
            progress = JobProgress.running(
                operation_id, JobKind.archive, total=total, processed=processed
            )
            logger.info(
                "Archived %d %s records. Progress: %d/%d (%d%%)",
                moved,
                source.value,
                processed,
                total,
                progress.percentage,
            )
            await self._progress.write(progress)
        return processed

    async def _invalidate_caches(self) -> None:
        if self._cache is None or not self._cache_config.invalidate_after_archive:
            return
        for prefix in ALL_QUERY_PREFIXES:
            await self._cache.invalidate(prefix)
