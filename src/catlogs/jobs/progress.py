"""Redis-backed progress slots for background jobs.

Snapshots are stored as JSON strings keyed by ``<kind>_progress:{operation_id}``
(``archive_progress:…`` / ``delete_progress:…``).  In-flight snapshots expire after
``ttl``; terminal ones after ``result_ttl``.  The job is the only writer and
any number of callers may poll.  Terminal snapshots are also published
on ``job_events:<kind>`` for subscribers that prefer not to poll.
"""

from __future__ import annotations

import asyncio
import logging
import time

from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from catlogs.jobs.schemas import INVALID_PROGRESS_MESSAGE
from catlogs.jobs.schemas import JobKind
from catlogs.jobs.schemas import JobNotFoundError
from catlogs.jobs.schemas import JobProgress
from catlogs.jobs.schemas import JobStatus
from catlogs.jobs.schemas import NO_PROGRESS_MESSAGE

logger = logging.getLogger(__name__)

_EVENTS_CHANNEL = "job_events"


def progress_key(kind: JobKind, operation_id: str) -> str:
    return f"{kind.key_prefix}:{operation_id}"


def events_channel(kind: JobKind) -> str:
    return f"{_EVENTS_CHANNEL}:{kind.value}"


class ProgressStore:
    """Short-lived key-value slot per operation id."""

    def __init__(
        self,
        redis: Redis,
        *,
        ttl: int = 3600,
        result_ttl: int | None = None,
        publish_events: bool = True,
    ) -> None:
        self._redis = redis
        self._ttl = ttl
        self._result_ttl = result_ttl or ttl
        self._publish_events = publish_events

    # -- write --

    async def write(self, progress: JobProgress) -> None:
        """Overwrite the snapshot for ``progress.operation_id``.

        Redis errors propagate: a job that cannot report progress fails.
        """
        key = progress_key(progress.kind, progress.operation_id)
        data = progress.model_dump_json()
        ttl = self._result_ttl if progress.terminal else self._ttl
        await self._redis.set(key, data, ex=ttl)
        logger.debug(
            "progress %s status=%s processed=%d/%d",
            key,
            progress.status.value,
            progress.processed,
            progress.total,
        )
        if progress.terminal and self._publish_events:
            await self._publish(progress.kind, data)

    async def _publish(self, kind: JobKind, data: str) -> None:
        try:
            await self._redis.publish(events_channel(kind), data)
        except RedisError:
            logger.exception("Failed to publish %s job event", kind.value)

    # -- read --

    async def _load(self, kind: JobKind, operation_id: str) -> JobProgress | None:
        raw = await self._redis.get(progress_key(kind, operation_id))
        if raw is None:
            return None
        return JobProgress.model_validate_json(raw)

    async def get_progress(self, kind: JobKind, operation_id: str) -> JobProgress:
        """Return the latest snapshot, or an ``unknown`` placeholder.

        A missing key is a valid state (never started, or expired) and is
        reported with ``status=unknown`` rather than raised.
        """
        try:
            progress = await self._load(kind, operation_id)
        except ValidationError:
            logger.warning("Invalid progress data for %s", operation_id)
            invalid = JobProgress.unknown(
                operation_id, kind, message=INVALID_PROGRESS_MESSAGE
            )
            return invalid.model_copy(update={"error": True})
        if progress is None:
            return JobProgress.unknown(operation_id, kind)
        return progress

    async def get_final_result(
        self, kind: JobKind, operation_id: str
    ) -> JobProgress:
        """Return the latest snapshot; raise ``JobNotFoundError`` when missing."""
        try:
            progress = await self._load(kind, operation_id)
        except ValidationError as exc:
            raise ValueError(INVALID_PROGRESS_MESSAGE) from exc
        if progress is None:
            raise JobNotFoundError(NO_PROGRESS_MESSAGE)
        return progress

    async def wait_for_completion(
        self,
        kind: JobKind,
        operation_id: str,
        *,
        timeout: float = 30.0,
        interval: float = 0.05,
    ) -> JobProgress:
        """Poll until the job reaches a terminal state.

        Raises ``TimeoutError`` if it has not finished within *timeout*
        seconds, and ``JobNotFoundError`` if the slot disappears.
        """
        deadline = time.monotonic() + timeout
        while True:
            progress = await self.get_progress(kind, operation_id)
            if progress.terminal:
                return progress
            if progress.status is JobStatus.unknown and not progress.error:
                raise JobNotFoundError(NO_PROGRESS_MESSAGE)
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"{kind.value} job {operation_id} still {progress.status.value}"
                )
            await asyncio.sleep(interval)
