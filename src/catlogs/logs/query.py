"""Paginated, filtered reads over the live and archived log collections.

Every read is ordered by ``timestamp`` descending and paged with
``start_after`` on the document named by the cursor.  Results that may
be cached (no free-text search, no ``skip_cache``) go through the Redis
query cache first; a hit never touches Firestore, so cached pages can lag
behind concurrent writes by up to the cache TTL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from catlogs.cache import ARCHIVED_LOGS_PREFIX
from catlogs.cache import LOGS_PREFIX
from catlogs.cache import QueryCache
from catlogs.cache import log_page_key
from catlogs.cache import stats_key
from catlogs.config import CacheConfig
from catlogs.logs.backend import count
from catlogs.logs.backend import in_time_range
from catlogs.logs.backend import newest_first
from catlogs.logs.backend import where
from catlogs.logs.dates import optional_range
from catlogs.logs.dates import parse_instant
from catlogs.logs.filters import is_cat_activity
from catlogs.logs.filters import matches_action_type
from catlogs.logs.filters import matches_activity_search
from catlogs.logs.filters import matches_archive_search
from catlogs.logs.filters import matches_log_search
from catlogs.models.records import ACTIVITY_COLLECTION
from catlogs.models.records import ACTIVITY_CURSOR_PREFIX
from catlogs.models.records import ARCHIVE_COLLECTION
from catlogs.models.records import LOGS_COLLECTION
from catlogs.models.records import LogFilter
from catlogs.models.records import LogLevel
from catlogs.models.records import log_entry_from_activity
from catlogs.models.records import log_entry_from_archive
from catlogs.models.records import log_entry_from_log
from catlogs.models.schemas import CAT_ACTIVITY_TAB
from catlogs.models.schemas import LogFilterOptions
from catlogs.models.schemas import LogPage
from catlogs.models.schemas import LogStats
from catlogs.observability import record_cache_lookup

logger = logging.getLogger(__name__)


class LogQueryService:
    """Read side of the log pipeline."""

    def __init__(
        self,
        db: Any,
        cache: QueryCache | None = None,
        *,
        cache_config: CacheConfig | None = None,
    ) -> None:
        self._db = db
        self._cache = cache
        self._cache_config = cache_config or CacheConfig()

    # ------------------------------------------------------------------
    # Cache plumbing
    # ------------------------------------------------------------------

    def _can_cache(self, options: LogFilterOptions) -> bool:
        return self._cache is not None and not options.skip_cache and not options.search

    async def _cached_page(self, namespace: str, key: str) -> LogPage | None:
        assert self._cache is not None
        page = await self._cache.get(key, LogPage)
        record_cache_lookup(namespace=namespace, hit=page is not None)
        if page is not None:
            logger.debug("Cache hit for %s", key)
        return page

    async def _cursor_snapshot(self, collection: Any, doc_id: str) -> Any | None:
        snapshot = await collection.document(doc_id).get()
        if not snapshot.exists:
            # Moved or deleted since the previous page; restart from the top.
            logger.info("Cursor %s no longer resolves in %s", doc_id, collection.id)
            return None
        return snapshot

    # ------------------------------------------------------------------
    # Live logs
    # ------------------------------------------------------------------

    async def get_logs(self, options: LogFilterOptions) -> LogPage:
        """Return one page of ``logs`` (or ``activity`` for cat-activity)."""
        log_filter = options.effective_filter()
        if options.tab == CAT_ACTIVITY_TAB:
            logger.info("Setting filter to cat-activity based on tab parameter")

        date_range = optional_range(options.start_date, options.end_date)

        key = log_page_key(LOGS_PREFIX, options)
        use_cache = self._can_cache(options)
        if use_cache:
            cached = await self._cached_page(LOGS_PREFIX, key)
            if cached is not None:
                return cached

        if log_filter is LogFilter.cat_activity:
            page = await self._read_activity(options, date_range)
        else:
            page = await self._read_logs(options, log_filter.level, date_range)

        logger.info(
            "Returning %d logs for filter %s (has_more=%s)",
            len(page.logs),
            log_filter.value,
            page.has_more,
        )
        if use_cache:
            assert self._cache is not None
            await self._cache.set(key, page, ttl=self._cache_config.log_page_ttl_seconds)
        return page

    async def _read_logs(
        self,
        options: LogFilterOptions,
        level: LogLevel | None,
        date_range: tuple[datetime, datetime] | None,
    ) -> LogPage:
        collection = self._db.collection(LOGS_COLLECTION)
        query = collection
        if level is not None:
            query = where(query, "level", "==", level.value)
        if date_range is not None:
            query = in_time_range(query, *date_range)
        query = newest_first(query)

        cursor = options.cursor
        if cursor and not cursor.startswith(ACTIVITY_CURSOR_PREFIX):
            snapshot = await self._cursor_snapshot(collection, cursor)
            if snapshot is not None:
                query = query.start_after(snapshot)

        docs = await query.limit(options.page_size).get()
        logger.debug("logs query returned %d documents", len(docs))

        action_type = options.wants_action_type()
        entries = []
        for doc in docs:
            entry = log_entry_from_log(doc.id, doc.to_dict() or {})
            if not matches_action_type(entry, action_type):
                continue
            if not matches_log_search(entry, options.search):
                continue
            entries.append(entry)

        return LogPage(
            logs=entries,
            cursor=docs[-1].id if docs else None,
            has_more=len(docs) == options.page_size,
        )

    async def _read_activity(
        self,
        options: LogFilterOptions,
        date_range: tuple[datetime, datetime] | None,
    ) -> LogPage:
        collection = self._db.collection(ACTIVITY_COLLECTION)
        query = collection
        if date_range is not None:
            query = in_time_range(query, *date_range)
        query = newest_first(query)

        cursor = options.cursor
        if cursor and cursor.startswith(ACTIVITY_CURSOR_PREFIX):
            doc_id = cursor[len(ACTIVITY_CURSOR_PREFIX):]
            snapshot = await self._cursor_snapshot(collection, doc_id)
            if snapshot is not None:
                query = query.start_after(snapshot)

        docs = await query.limit(options.page_size).get()
        logger.debug("activity query returned %d documents", len(docs))

        action_type = options.wants_action_type()
        entries = []
        for doc in docs:
            entry = log_entry_from_activity(doc.id, doc.to_dict() or {})
            if not matches_action_type(entry, action_type):
                continue
            if not matches_activity_search(entry, options.search):
                continue
            entries.append(entry)

        return LogPage(
            logs=entries,
            cursor=f"{ACTIVITY_CURSOR_PREFIX}{docs[-1].id}" if docs else None,
            has_more=len(docs) == options.page_size,
        )

    # ------------------------------------------------------------------
    # Archived logs
    # ------------------------------------------------------------------

    async def get_archived_logs(self, options: LogFilterOptions) -> LogPage:
        """Return one page of ``logs_archived``.

        Level filters only match system logs (``actionType`` null); the
        cat-activity filter keeps entries carrying an action type.
        """
        log_filter = options.effective_filter()
        start = end = None
        if options.start_date:
            start = parse_instant(options.start_date, field="start_date")
        if options.end_date:
            end = parse_instant(options.end_date, field="end_date")

        key = log_page_key(ARCHIVED_LOGS_PREFIX, options)
        use_cache = self._can_cache(options)
        if use_cache:
            cached = await self._cached_page(ARCHIVED_LOGS_PREFIX, key)
            if cached is not None:
                return cached

        collection = self._db.collection(ARCHIVE_COLLECTION)
        query = in_time_range(collection, start, end)
        level = log_filter.level
        if level is not None:
            query = where(query, "level", "==", level.value)
            query = where(query, "actionType", "==", None)
        action_type = options.wants_action_type()
        if action_type:
            query = where(query, "actionType", "==", action_type)
        query = newest_first(query)

        if options.cursor:
            snapshot = await self._cursor_snapshot(collection, options.cursor)
            if snapshot is not None:
                query = query.start_after(snapshot)

        # One extra document tells us whether another page exists.
        docs = await query.limit(options.page_size + 1).get()
        has_more = len(docs) > options.page_size
        docs = docs[: options.page_size]

        entries = []
        for doc in docs:
            entry = log_entry_from_archive(doc.id, doc.to_dict() or {})
            if log_filter is LogFilter.cat_activity and not is_cat_activity(entry):
                continue
            if not matches_archive_search(entry, options.search):
                continue
            entries.append(entry)

        page = LogPage(
            logs=entries,
            cursor=docs[-1].id if docs else None,
            has_more=has_more,
        )
        if use_cache:
            assert self._cache is not None
            await self._cache.set(key, page, ttl=self._cache_config.log_page_ttl_seconds)
        return page

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_stats(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        log_filter: LogFilter = LogFilter.all,
        skip_cache: bool = False,
    ) -> LogStats:
        """Count live records per bucket, cached for the stats TTL."""
        date_range = optional_range(start_date, end_date)

        key = stats_key(log_filter, start_date, end_date)
        use_cache = self._cache is not None and not skip_cache
        if use_cache:
            assert self._cache is not None
            cached = await self._cache.get(key, LogStats)
            record_cache_lookup(namespace="logs_stats", hit=cached is not None)
            if cached is not None:
                return cached

        logs_query: Any = self._db.collection(LOGS_COLLECTION)
        activity_query: Any = self._db.collection(ACTIVITY_COLLECTION)
        if date_range is not None:
            logs_query = in_time_range(logs_query, *date_range)
            activity_query = in_time_range(activity_query, *date_range)

        logs_total = await count(logs_query)
        cat_activity = await count(activity_query)
        buckets = {level: 0 for level in LogLevel}
        if log_filter is LogFilter.all:
            for level in LogLevel:
                buckets[level] = await count(where(logs_query, "level", "==", level.value))
        elif log_filter.level is not None:
            level = log_filter.level
            buckets[level] = await count(where(logs_query, "level", "==", level.value))

        total = logs_total + cat_activity
        other = 0
        if log_filter is LogFilter.all:
            other = max(total - sum(buckets.values()) - cat_activity, 0)

        stats = LogStats(
            total=total,
            info=buckets[LogLevel.info],
            warn=buckets[LogLevel.warn],
            error=buckets[LogLevel.error],
            cat_activity=cat_activity,
            other=other,
        )
        if use_cache:
            assert self._cache is not None
            await self._cache.set(key, stats, ttl=self._cache_config.stats_ttl_seconds)
        return stats
