"""Record models for the live and archived log collections.

Firestore documents use camelCase field names; everything in Python uses
snake_case.  The translation between the two lives here so the query,
job and export code never touch raw field names directly.
"""

from __future__ import annotations

import json
from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

LOGS_COLLECTION = "logs"
ACTIVITY_COLLECTION = "activity"
ARCHIVE_COLLECTION = "logs_archived"

ACTIVITY_CURSOR_PREFIX = "activity:"
VIEW_ACTION = "view"


class SourceCollection(str, Enum):
    """Live collection an archived record was moved from."""

    logs = "logs"
    activity = "activity"


class LogLevel(str, Enum):
    """Severity of a system log."""

    info = "info"
    warn = "warn"
    error = "error"


class LogFilter(str, Enum):
    """Top-level filter accepted by the log views."""

    all = "all"
    info = "info"
    warn = "warn"
    error = "error"
    cat_activity = "cat-activity"

    @property
    def level(self) -> LogLevel | None:
        """Return the level this filter selects, if it is a level filter."""
        try:
            return LogLevel(self.value)
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------


class LogEntry(BaseModel):
    """Normalized view of a log, regardless of the collection it came from."""

    id: str = Field(description="Document id; activity ids carry an 'activity:' prefix.")
    message: str = Field(default="", description="Human-readable description.")
    level: LogLevel = Field(default=LogLevel.info)
    timestamp: datetime = Field(description="When the event occurred (UTC).")
    details: dict[str, Any] = Field(default_factory=dict)
    user_id: str = ""
    user_email: str = ""
    cat_id: str = ""
    cat_name: str = ""
    action_type: str = ""
    archived_at: datetime | None = Field(
        default=None,
        description="When the record was moved to the archive.",
    )
    source_collection: SourceCollection | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_datetime(value: Any) -> datetime | None:
    # Firestore hands back DatetimeWithNanoseconds, a datetime subclass.
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _coerce_level(value: Any) -> LogLevel:
    try:
        return LogLevel(value)
    except ValueError:
        return LogLevel.info


def serialize_details(details: dict[str, Any] | None) -> str:
    """Serialize *details* compactly, the way search and export see it."""
    return json.dumps(details or {}, separators=(",", ":"), default=str)


def activity_message(data: dict[str, Any]) -> str:
    """Synthesize ``"<action> <target> <targetId>"`` for an activity record."""
    return (
        f"{_text(data.get('action'))} {_text(data.get('target'))} "
        f"{_text(data.get('targetId'))}"
    )


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def log_entry_from_log(doc_id: str, data: dict[str, Any]) -> LogEntry:
    """Build a ``LogEntry`` from a ``logs`` document.

    Attribution and cat fields fall back to the same keys inside
    ``details`` for records written by older clients.
    """
    details = _as_dict(data.get("details"))
    return LogEntry(
        id=doc_id,
        message=_text(data.get("message")),
        level=_coerce_level(data.get("level")),
        timestamp=_as_datetime(data.get("timestamp")) or utcnow(),
        details=details,
        user_id=_text(data.get("userId") or details.get("userId")),
        user_email=_text(data.get("userEmail") or details.get("userEmail")),
        cat_id=_text(data.get("catId") or details.get("catId")),
        cat_name=_text(data.get("catName") or details.get("catName")),
        action_type=_text(data.get("actionType") or details.get("actionType")),
    )


def log_entry_from_activity(doc_id: str, data: dict[str, Any]) -> LogEntry:
    """Build a ``LogEntry`` from an ``activity`` document."""
    details = _as_dict(data.get("details"))
    return LogEntry(
        id=f"{ACTIVITY_CURSOR_PREFIX}{doc_id}",
        message=activity_message(data),
        level=LogLevel.info,
        timestamp=_as_datetime(data.get("timestamp")) or utcnow(),
        details=details,
        user_id=_text(data.get("userId")),
        user_email=_text(data.get("userEmail")),
        cat_id=_text(data.get("targetId")),
        cat_name=_text(details.get("name")),
        action_type=_text(data.get("action")),
    )


def log_entry_from_archive(doc_id: str, data: dict[str, Any]) -> LogEntry:
    """Build a ``LogEntry`` from a ``logs_archived`` document."""
    source = data.get("sourceCollection")
    if source == SourceCollection.activity.value:
        entry = log_entry_from_activity(doc_id, data)
        entry = entry.model_copy(update={"id": doc_id})
    else:
        entry = log_entry_from_log(doc_id, data)
    try:
        source_collection = SourceCollection(source) if source else None
    except ValueError:
        source_collection = None
    return entry.model_copy(
        update={
            "action_type": _text(data.get("actionType")) or entry.action_type,
            "archived_at": _as_datetime(data.get("archivedAt")),
            "source_collection": source_collection,
        }
    )


def archived_document(
    data: dict[str, Any],
    source: SourceCollection,
    archived_at: Any,
) -> dict[str, Any]:
    """Return the ``logs_archived`` payload for a live document.

    All source fields are preserved.  ``actionType`` is always written
    explicitly (null for system events without one, the action verb for
    activity records) so archive filters on it never depend on whether a
    writer omitted the field or left it empty.
    """
    payload = dict(data)
    if source is SourceCollection.activity:
        action_type = payload.get("actionType") or payload.get("action")
    else:
        action_type = payload.get("actionType")
    payload["actionType"] = action_type or None
    payload["archivedAt"] = archived_at
    payload["sourceCollection"] = source.value
    return payload


def log_document(
    *,
    level: LogLevel,
    message: str,
    timestamp: datetime,
    details: dict[str, Any] | None = None,
    user_id: str | None = None,
    user_email: str | None = None,
    cat_id: str | None = None,
    cat_name: str | None = None,
    action_type: str | None = None,
) -> dict[str, Any]:
    """Return the Firestore payload for a new ``logs`` document."""
    doc: dict[str, Any] = {
        "timestamp": timestamp,
        "level": level.value,
        "message": message,
        "details": details or {},
        "userId": user_id,
        "userEmail": user_email,
        "actionType": action_type,
    }
    if cat_id is not None:
        doc["catId"] = cat_id
    if cat_name is not None:
        doc["catName"] = cat_name
    return doc


def activity_document(
    *,
    action: str,
    target: str,
    target_id: str,
    timestamp: datetime,
    details: dict[str, Any] | None = None,
    user_id: str | None = None,
    user_email: str | None = None,
) -> dict[str, Any]:
    """Return the Firestore payload for a new ``activity`` document."""
    return {
        "action": action,
        "target": target,
        "targetId": target_id,
        "details": details or {},
        "timestamp": timestamp,
        "userId": user_id,
        "userEmail": user_email,
    }
