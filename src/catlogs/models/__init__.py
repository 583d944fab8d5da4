"""Models domain — record shapes, query inputs and results."""

from __future__ import annotations

from catlogs.models.records import ACTIVITY_COLLECTION
from catlogs.models.records import ARCHIVE_COLLECTION
from catlogs.models.records import LOGS_COLLECTION
from catlogs.models.records import LogEntry
from catlogs.models.records import LogFilter
from catlogs.models.records import LogLevel
from catlogs.models.records import SourceCollection
from catlogs.models.schemas import ActivityResult
from catlogs.models.schemas import CreateResult
from catlogs.models.schemas import ExportOptions
from catlogs.models.schemas import ExportResult
from catlogs.models.schemas import InvalidParametersError
from catlogs.models.schemas import LogFilterOptions
from catlogs.models.schemas import LogPage
from catlogs.models.schemas import LogsResult
from catlogs.models.schemas import LogStats
from catlogs.models.schemas import RepairResult
from catlogs.models.schemas import StatsResult
from catlogs.models.schemas import ToolResult

__all__ = [
    # Collections
    "ACTIVITY_COLLECTION",
    "ARCHIVE_COLLECTION",
    "LOGS_COLLECTION",
    # Records
    "LogEntry",
    "LogFilter",
    "LogLevel",
    "SourceCollection",
    # Inputs
    "ExportOptions",
    "InvalidParametersError",
    "LogFilterOptions",
    # Results
    "ActivityResult",
    "CreateResult",
    "ExportResult",
    "LogPage",
    "LogStats",
    "LogsResult",
    "RepairResult",
    "StatsResult",
    "ToolResult",
]
