"""Deterministic cache keys for the query-result cache.

Keys are ``<prefix>:<filter>:<startDate>:<endDate>:<actionType>:<cursor>:<pageSize>:<search>``
with empty segments for missing values, so two requests with the same
parameters always share an entry.
"""

from __future__ import annotations

from catlogs.models.records import LogFilter
from catlogs.models.schemas import LogFilterOptions

LOGS_PREFIX = "logs"
ARCHIVED_LOGS_PREFIX = "archived_logs"
STATS_PREFIX = "logs_stats"

ALL_QUERY_PREFIXES = (LOGS_PREFIX, ARCHIVED_LOGS_PREFIX, STATS_PREFIX)


def log_page_key(prefix: str, options: LogFilterOptions) -> str:
    """Return the cache key for one page of a log view."""
    segments = [
        prefix,
        options.effective_filter().value,
        options.start_date or "",
        options.end_date or "",
        options.action_type or "",
        options.cursor or "",
        str(options.page_size),
        options.search or "",
    ]
    return ":".join(segments)


def stats_key(
    log_filter: LogFilter,
    start_date: str | None,
    end_date: str | None,
) -> str:
    """Return the cache key for an aggregate-stats request."""
    return f"{STATS_PREFIX}:{log_filter.value}:{start_date or ''}:{end_date or ''}"


def key_pattern(prefix: str) -> str:
    """Return the ``SCAN`` match pattern covering every key under *prefix*."""
    return f"{prefix}:*"
