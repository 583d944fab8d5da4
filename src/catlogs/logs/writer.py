"""Append-only writers for the ``logs`` and ``activity`` collections."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from catlogs.logs.backend import newest_first
from catlogs.models.records import ACTIVITY_COLLECTION
from catlogs.models.records import LOGS_COLLECTION
from catlogs.models.records import LogEntry
from catlogs.models.records import LogLevel
from catlogs.models.records import activity_document
from catlogs.models.records import log_document
from catlogs.models.records import log_entry_from_activity
from catlogs.models.records import utcnow

logger = logging.getLogger(__name__)


class LogWriter:
    """Records system events into ``logs``."""

    def __init__(self, db: Any) -> None:
        self._db = db

    async def write(
        self,
        level: LogLevel | str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        user_id: str | None = None,
        user_email: str | None = None,
        cat_id: str | None = None,
        cat_name: str | None = None,
        action_type: str | None = None,
        timestamp: datetime | None = None,
    ) -> str:
        """Append one log and return its document id."""
        doc = log_document(
            level=LogLevel(level),
            message=message,
            timestamp=timestamp or utcnow(),
            details=details,
            user_id=user_id,
            user_email=user_email,
            cat_id=cat_id,
            cat_name=cat_name,
            action_type=action_type,
        )
        _, ref = await self._db.collection(LOGS_COLLECTION).add(doc)
        logger.debug("[%s] %s", doc["level"].upper(), message)
        return ref.id

    async def info(self, message: str, **kwargs: Any) -> str:
        return await self.write(LogLevel.info, message, **kwargs)

    async def warn(self, message: str, **kwargs: Any) -> str:
        return await self.write(LogLevel.warn, message, **kwargs)

    async def error(self, message: str, **kwargs: Any) -> str:
        return await self.write(LogLevel.error, message, **kwargs)


class ActivityWriter:
    """Records user actions on domain entities into ``activity``."""

    def __init__(self, db: Any) -> None:
        self._db = db

    async def record(
        self,
        action: str,
        target: str,
        target_id: str,
        *,
        details: dict[str, Any] | None = None,
        user_id: str | None = None,
        user_email: str | None = None,
        timestamp: datetime | None = None,
    ) -> str:
        """Append one activity record and return its document id."""
        doc = activity_document(
            action=action,
            target=target,
            target_id=target_id,
            timestamp=timestamp or utcnow(),
            details=details,
            user_id=user_id,
            user_email=user_email,
        )
        _, ref = await self._db.collection(ACTIVITY_COLLECTION).add(doc)
        logger.info("Activity logged: %s on %s (%s)", action, target, target_id)
        return ref.id

    async def recent(self, limit: int = 10) -> list[LogEntry]:
        """Return the newest activity records, newest first."""
        query = newest_first(self._db.collection(ACTIVITY_COLLECTION))
        docs = await query.limit(limit).get()
        return [log_entry_from_activity(doc.id, doc.to_dict() or {}) for doc in docs]
