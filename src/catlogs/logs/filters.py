"""In-memory post-filters that Firestore cannot express.

Free-text search has to match the message, the serialized details and
the cat name at once, so it runs after the page is fetched.  Pages can
therefore hold fewer matches than ``page_size``.
"""

from __future__ import annotations

from catlogs.models.records import LogEntry
from catlogs.models.records import serialize_details


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_action_type(entry: LogEntry, action_type: str | None) -> bool:
    """Keep everything when *action_type* is unset or ``"all"``."""
    if not action_type or action_type == "all":
        return True
    return entry.action_type == action_type


def matches_log_search(entry: LogEntry, search: str | None) -> bool:
    """Match a ``logs`` entry on message, details or cat name."""
    if not search:
        return True
    needle = search.lower()
    return (
        _contains(entry.message, needle)
        or _contains(serialize_details(entry.details), needle)
        or _contains(entry.cat_name, needle)
    )


def matches_activity_search(entry: LogEntry, search: str | None) -> bool:
    """Match an ``activity`` entry on its synthesized message or details."""
    if not search:
        return True
    needle = search.lower()
    return _contains(entry.message, needle) or _contains(
        serialize_details(entry.details), needle
    )


def matches_archive_search(entry: LogEntry, search: str | None) -> bool:
    """Match an archived entry on message, details or user email."""
    if not search:
        return True
    needle = search.lower()
    detail_email = entry.details.get("userEmail")
    return (
        _contains(entry.message, needle)
        or _contains(serialize_details(entry.details), needle)
        or _contains(entry.user_email, needle)
        or (isinstance(detail_email, str) and _contains(detail_email, needle))
    )


def is_cat_activity(entry: LogEntry) -> bool:
    return bool(entry.action_type)
