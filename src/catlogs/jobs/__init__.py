"""Jobs domain — background archival/deletion and their progress slots."""

from catlogs.jobs.archival import ArchivalJob
from catlogs.jobs.deletion import DeletionJob
from catlogs.jobs.progress import ProgressStore
from catlogs.jobs.runner import JobRunner
from catlogs.jobs.schemas import JobKind
from catlogs.jobs.schemas import JobNotFoundError
from catlogs.jobs.schemas import JobProgress
from catlogs.jobs.schemas import JobStartResult
from catlogs.jobs.schemas import JobStatus
from catlogs.jobs.schemas import ProgressResult
from catlogs.jobs.schemas import percent_complete

__all__ = [
    "ArchivalJob",
    "DeletionJob",
    "JobKind",
    "JobNotFoundError",
    "JobProgress",
    "JobRunner",
    "JobStartResult",
    "JobStatus",
    "ProgressResult",
    "ProgressStore",
    "percent_complete",
]
