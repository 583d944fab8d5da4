"""Backfill ``level`` on system logs written without one."""

from __future__ import annotations

import logging
from typing import Any

from catlogs.logs.backend import where
from catlogs.models.records import LOGS_COLLECTION
from catlogs.models.records import LogLevel
from catlogs.models.schemas import RepairResult

logger = logging.getLogger(__name__)

_ERROR_WORDS = ("error", "fail", "exception")
_WARN_WORDS = ("warn", "caution", "attention")


def infer_level(data: dict[str, Any]) -> LogLevel:
    """Guess a level from the message text.

    Cat-activity logs (those with an ``actionType``) are always ``info``.
    """
    details = data.get("details") if isinstance(data.get("details"), dict) else {}
    if data.get("actionType") or details.get("actionType"):
        return LogLevel.info
    message = str(data.get("message") or "").lower()
    if any(word in message for word in _ERROR_WORDS):
        return LogLevel.error
    if any(word in message for word in _WARN_WORDS):
        return LogLevel.warn
    return LogLevel.info


class LevelRepair:
    """On-demand pass over logs whose ``level`` is null."""

    def __init__(self, db: Any, *, scan_limit: int = 500) -> None:
        self._db = db
        self._scan_limit = scan_limit

    async def run(self) -> RepairResult:
        query = where(self._db.collection(LOGS_COLLECTION), "level", "==", None)
        docs = await query.limit(self._scan_limit).get()
        if not docs:
            return RepairResult(updated=0, message="No logs need fixing")

        batch = self._db.batch()
        for doc in docs:
            level = infer_level(doc.to_dict() or {})
            batch.update(doc.reference, {"level": level.value})
        await batch.commit()

        logger.info("Backfilled level on %d logs", len(docs))
        return RepairResult(updated=len(docs), message=f"Fixed {len(docs)} log entries")
