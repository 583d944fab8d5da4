"""CSV export of the ``logs`` collection."""

from __future__ import annotations

import csv
import io
import logging
from typing import Any

from catlogs.logs.backend import in_time_range
from catlogs.logs.backend import newest_first
from catlogs.logs.backend import where
from catlogs.logs.dates import optional_range
from catlogs.logs.filters import is_cat_activity
from catlogs.logs.filters import matches_action_type
from catlogs.logs.filters import matches_log_search
from catlogs.models.records import LOGS_COLLECTION
from catlogs.models.records import LogEntry
from catlogs.models.records import LogFilter
from catlogs.models.records import log_entry_from_log
from catlogs.models.records import serialize_details
from catlogs.models.schemas import ExportOptions

logger = logging.getLogger(__name__)

CSV_HEADER = (
    "Timestamp",
    "Level",
    "Message",
    "User ID",
    "User Email",
    "Cat ID",
    "Cat Name",
    "Action Type",
    "Details",
)


def _iso(entry: LogEntry) -> str:
    return entry.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_csv(entries: list[LogEntry]) -> str:
    """Render *entries* as CSV; fields are quoted only when they need it."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    for entry in entries:
        writer.writerow(
            (
                _iso(entry),
                entry.level.value,
                entry.message or "No message",
                entry.user_id,
                entry.user_email,
                entry.cat_id,
                entry.cat_name,
                entry.action_type,
                serialize_details(entry.details),
            )
        )
    return buffer.getvalue().rstrip("\n")


class LogExporter:
    """Applies the query-service filter semantics to a bounded export."""

    def __init__(self, db: Any, *, limit: int = 10_000) -> None:
        self._db = db
        self._limit = limit

    async def collect(self, options: ExportOptions) -> list[LogEntry]:
        date_range = optional_range(options.start_date, options.end_date)
        query: Any = self._db.collection(LOGS_COLLECTION)
        if date_range is not None:
            query = in_time_range(query, *date_range)
        level = options.filter.level
        if level is not None:
            query = where(query, "level", "==", level.value)
        docs = await newest_first(query).limit(self._limit).get()

        entries = []
        for doc in docs:
            entry = log_entry_from_log(doc.id, doc.to_dict() or {})
            if options.filter is LogFilter.cat_activity and not is_cat_activity(entry):
                continue
            if not matches_action_type(entry, options.action_type):
                continue
            if not matches_log_search(entry, options.search):
                continue
            entries.append(entry)
        logger.info("Exporting %d of %d scanned logs", len(entries), len(docs))
        return entries

    async def export(self, options: ExportOptions) -> str:
        return to_csv(await self.collect(options))
