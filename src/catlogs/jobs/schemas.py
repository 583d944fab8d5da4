"""Job progress models.

A ``JobProgress`` snapshot is the whole value stored per operation id;
every update overwrites the previous one.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel
from pydantic import Field

from catlogs.models.schemas import ToolResult

NO_PROGRESS_MESSAGE = "No progress data found for this operation"
INVALID_PROGRESS_MESSAGE = "Invalid progress data"


class JobNotFoundError(LookupError):
    """Raised when no progress snapshot exists for an operation id."""


class JobKind(str, Enum):
    """Background job families, each with its own progress key namespace."""

    archive = "archive"
    delete = "delete"

    @property
    def key_prefix(self) -> str:
        return f"{self.value}_progress"


class JobStatus(str, Enum):
    """Lifecycle state of a background job."""

    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    # No snapshot exists: never started, or already expired.
    unknown = "unknown"


def percent_complete(processed: int, total: int) -> int:
    """Return ``round(processed / total * 100)`` rounding halves up, capped at 100."""
    if total <= 0:
        return 100
    return min(100, (processed * 200 + total) // (total * 2))


class JobProgress(BaseModel):
    """Snapshot of one background job."""

    operation_id: str
    kind: JobKind
    status: JobStatus = JobStatus.pending
    in_progress: bool = False
    total: int = Field(default=0, ge=0)
    processed: int = Field(default=0, ge=0)
    percentage: int = Field(default=0, ge=0, le=100)
    completed: bool = False
    error: bool = False
    message: str | None = None
    updated_at: float = Field(default_factory=time.time)

    @property
    def terminal(self) -> bool:
        return self.status in (JobStatus.completed, JobStatus.failed)

    @classmethod
    def pending(cls, operation_id: str, kind: JobKind) -> JobProgress:
        return cls(
            operation_id=operation_id,
            kind=kind,
            status=JobStatus.pending,
            in_progress=True,
        )

    @classmethod
    def running(
        cls,
        operation_id: str,
        kind: JobKind,
        *,
        total: int,
        processed: int,
    ) -> JobProgress:
        return cls(
            operation_id=operation_id,
            kind=kind,
            status=JobStatus.running,
            in_progress=True,
            total=total,
            processed=processed,
            percentage=percent_complete(processed, total) if total else 0,
        )

    @classmethod
    def finished(
        cls,
        operation_id: str,
        kind: JobKind,
        *,
        total: int,
        processed: int,
        message: str,
    ) -> JobProgress:
        return cls(
            operation_id=operation_id,
            kind=kind,
            status=JobStatus.completed,
            in_progress=False,
            total=total,
            processed=processed,
            percentage=100,
            completed=True,
            message=message,
        )

    @classmethod
    def failed(
        cls,
        operation_id: str,
        kind: JobKind,
        *,
        message: str,
        total: int = 0,
        processed: int = 0,
    ) -> JobProgress:
        return cls(
            operation_id=operation_id,
            kind=kind,
            status=JobStatus.failed,
            in_progress=False,
            total=total,
            processed=processed,
            percentage=percent_complete(processed, total) if total else 0,
            completed=True,
            error=True,
            message=message,
        )

    @classmethod
    def unknown(
        cls,
        operation_id: str,
        kind: JobKind,
        message: str = NO_PROGRESS_MESSAGE,
    ) -> JobProgress:
        return cls(
            operation_id=operation_id,
            kind=kind,
            status=JobStatus.unknown,
            message=message,
        )


# ---------------------------------------------------------------------------
# Output models — tools
# ---------------------------------------------------------------------------


class JobStartResult(ToolResult):
    """Response from archive_logs and delete_archived_logs."""

    operation_id: str = Field(
        default="",
        description="Poll the matching progress tool with this id.",
    )


class ProgressResult(ToolResult):
    """Response from the progress and final-result tools."""

    progress: JobProgress | None = None
