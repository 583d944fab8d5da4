"""Cache subsystem — Redis-backed query-result cache."""

from catlogs.cache.keys import ALL_QUERY_PREFIXES
from catlogs.cache.keys import ARCHIVED_LOGS_PREFIX
from catlogs.cache.keys import LOGS_PREFIX
from catlogs.cache.keys import STATS_PREFIX
from catlogs.cache.keys import log_page_key
from catlogs.cache.keys import stats_key
from catlogs.cache.store import QueryCache

__all__ = [
    "ALL_QUERY_PREFIXES",
    "ARCHIVED_LOGS_PREFIX",
    "LOGS_PREFIX",
    "QueryCache",
    "STATS_PREFIX",
    "log_page_key",
    "stats_key",
]
