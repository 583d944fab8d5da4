"""Launch-and-forget execution of background jobs with tracked tasks.

``launch()`` returns the operation id as soon as the ``pending`` snapshot
is written.  The work runs on the event loop as an ``asyncio.Task``; a
strong reference is held until it finishes so the task cannot be garbage
collected mid-flight.  Any exception escaping the work is converted into
a terminal ``failed`` snapshot; jobs are never retried.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from collections.abc import Callable
from time import perf_counter

from redis.exceptions import RedisError  # type: ignore[import-untyped]

from catlogs.jobs.progress import ProgressStore
from catlogs.jobs.schemas import JobKind
from catlogs.jobs.schemas import JobProgress
from catlogs.observability import record_latency

logger = logging.getLogger(__name__)

JobWork = Callable[[str], Awaitable[object]]


class JobRunner:
    """Owns the background tasks of every archival/deletion job."""

    def __init__(self, progress: ProgressStore) -> None:
        self._progress = progress
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def progress(self) -> ProgressStore:
        return self._progress

    async def launch(self, kind: JobKind, work: JobWork) -> str:
        """Start *work* in the background and return its operation id."""
        operation_id = str(uuid.uuid4())
        await self._progress.write(JobProgress.pending(operation_id, kind))

        task = asyncio.create_task(
            self._execute(kind, operation_id, work),
            name=f"{kind.value}:{operation_id}",
        )
        self._tasks[operation_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(operation_id, None))
        logger.info("Started %s job %s", kind.value, operation_id)
        return operation_id

    async def _execute(self, kind: JobKind, operation_id: str, work: JobWork) -> None:
        start = perf_counter()
        ok = False
        try:
            await work(operation_id)
            ok = True
        except Exception as exc:
            logger.exception("Background %s job %s failed", kind.value, operation_id)
            await self._record_failure(kind, operation_id, str(exc) or type(exc).__name__)
        finally:
            record_latency(
                operation=f"job.{kind.value}",
                duration_ms=(perf_counter() - start) * 1000,
                ok=ok,
            )

    async def _record_failure(self, kind: JobKind, operation_id: str, message: str) -> None:
        # Keep the last reported counters so polled progress never goes backwards.
        try:
            last = await self._progress.get_progress(kind, operation_id)
            await self._progress.write(
                JobProgress.failed(
                    operation_id,
                    kind,
                    message=message,
                    total=last.total,
                    processed=last.processed,
                )
            )
        except RedisError:
            logger.exception(
                "Could not record failure of %s job %s", kind.value, operation_id
            )

    # -- introspection --

    def running(self) -> list[str]:
        """Return the operation ids whose tasks have not finished yet."""
        return [op for op, task in self._tasks.items() if not task.done()]

    async def wait(self, operation_id: str) -> None:
        """Wait for one job's task if it is still tracked."""
        task = self._tasks.get(operation_id)
        if task is not None:
            await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait for every outstanding job (used on shutdown)."""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)
