"""Pydantic models for the query, export and repair operations.

Input models validate tool arguments; output models shape responses.
FastMCP v2 serializes Pydantic models automatically.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

from catlogs.models.records import LogEntry
from catlogs.models.records import LogFilter

CAT_ACTIVITY_TAB = "catActivity"


class InvalidParametersError(ValueError):
    """Raised when a request is rejected before any backend call."""


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class LogFilterOptions(BaseModel):
    """Filter and paging options shared by the live and archived log views."""

    page_size: int = Field(
        default=25,
        ge=1,
        le=500,
        description="Maximum number of backend documents read for one page.",
    )
    cursor: str | None = Field(
        default=None,
        description="Opaque token returned by the previous page.",
    )
    filter: LogFilter = Field(
        default=LogFilter.all,
        description="Level filter, or 'cat-activity' for the activity stream.",
    )
    start_date: str | None = Field(
        default=None,
        description="Inclusive lower bound, ISO-8601 instant.",
    )
    end_date: str | None = Field(
        default=None,
        description="Inclusive upper bound, ISO-8601 instant.",
    )
    action_type: str | None = Field(
        default=None,
        description="Keep only records with this action type ('all' disables).",
    )
    search: str | None = Field(
        default=None,
        description="Case-insensitive free-text match; never cached.",
    )
    skip_cache: bool = Field(
        default=False,
        description="Bypass the result cache for both read and write.",
    )
    tab: str | None = Field(
        default=None,
        description="UI tab hint; 'catActivity' forces the cat-activity filter.",
    )

    def effective_filter(self) -> LogFilter:
        if self.tab == CAT_ACTIVITY_TAB:
            return LogFilter.cat_activity
        return self.filter

    def wants_action_type(self) -> str | None:
        if self.action_type and self.action_type != "all":
            return self.action_type
        return None


class ExportOptions(BaseModel):
    """Options for CSV export of the ``logs`` collection."""

    filter: LogFilter = LogFilter.all
    start_date: str | None = None
    end_date: str | None = None
    action_type: str | None = None
    search: str | None = None


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class LogPage(BaseModel):
    """One page of normalized log entries."""

    logs: list[LogEntry] = Field(default_factory=list)
    cursor: str | None = Field(
        default=None,
        description="Pass back as ``cursor`` to read the next page.",
    )
    has_more: bool = Field(
        default=False,
        description="True when the backend returned a full page.",
    )


class LogStats(BaseModel):
    """Per-bucket counts over the live collections."""

    total: int = 0
    info: int = 0
    warn: int = 0
    error: int = 0
    cat_activity: int = 0
    other: int = 0




# ---------------------------------------------------------------------------
# Output models — tools
# ---------------------------------------------------------------------------


class ToolResult(BaseModel):
    """Fields shared by every tool response."""

    status: str = Field(
        default="ok",
        description="Outcome status (ok, rejected, error, not_found).",
    )
    error_code: str | None = Field(
        default=None,
        description="Machine-readable reason when status is not ok.",
    )
    message: str | None = None


class LogsResult(ToolResult):
    """Response from get_logs and get_archived_logs."""

    logs: list[LogEntry] = Field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False

    @classmethod
    def from_page(cls, page: LogPage) -> LogsResult:
        return cls(logs=page.logs, cursor=page.cursor, has_more=page.has_more)


class StatsResult(ToolResult):
    """Response from get_log_stats."""

    stats: LogStats | None = None


class CreateResult(ToolResult):
    """Response from create_log and record_activity."""

    id: str = Field(default="", description="ID assigned to the new document.")


class ActivityResult(ToolResult):
    """Response from get_recent_activity."""

    activities: list[LogEntry] = Field(default_factory=list)


class RepairResult(ToolResult):
    """Outcome of one level-repair pass."""

    success: bool = True
    updated: int = 0
    message: str | None = ""


class ExportResult(ToolResult):
    """Response from export_logs."""

    csv: str = ""
    rows: int = 0
