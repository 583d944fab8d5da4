"""catlogs — FastMCP v2 server over the log archival pipeline.

Tools delegate to the query service, the ingestion writers and the
background jobs.  Call ``configure(redis_url=...)`` before using the
server; Firestore targets the emulator whenever
``FIRESTORE_EMULATOR_HOST`` is set.
"""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any
from typing import TypeVar

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_access_token
from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]

from catlogs.auth import create_mcp_auth
from catlogs.authz import AuthorizationDecision
from catlogs.authz import authorize_tool
from catlogs.cache import QueryCache
from catlogs.config import CacheConfig
from catlogs.config import FirestoreConfig
from catlogs.config import JobConfig
from catlogs.config import QueryConfig
from catlogs.jobs import ArchivalJob
from catlogs.jobs import DeletionJob
from catlogs.jobs import JobKind
from catlogs.jobs import JobNotFoundError
from catlogs.jobs import JobRunner
from catlogs.jobs import JobStartResult
from catlogs.jobs import ProgressResult
from catlogs.jobs import ProgressStore
from catlogs.logs import ActivityWriter
from catlogs.logs import LevelRepair
from catlogs.logs import LogExporter
from catlogs.logs import LogQueryService
from catlogs.logs import LogWriter
from catlogs.logs import create_firestore_client
from catlogs.logs.export import to_csv
from catlogs.models.records import LogFilter
from catlogs.models.records import LogLevel
from catlogs.models.schemas import ActivityResult
from catlogs.models.schemas import CreateResult
from catlogs.models.schemas import ExportOptions
from catlogs.models.schemas import ExportResult
from catlogs.models.schemas import InvalidParametersError
from catlogs.models.schemas import LogFilterOptions
from catlogs.models.schemas import LogsResult
from catlogs.models.schemas import RepairResult
from catlogs.models.schemas import StatsResult
from catlogs.models.schemas import ToolResult
from catlogs.observability import record_latency

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=ToolResult)

mcp = FastMCP("catlogs", auth=create_mcp_auth())

# ---------------------------------------------------------------------------
# Backends (set via configure())
# ---------------------------------------------------------------------------

_redis: Redis | None = None
_db: Any = None
_query: LogQueryService | None = None
_runner: JobRunner | None = None
_archival: ArchivalJob | None = None
_deletion: DeletionJob | None = None
_log_writer: LogWriter | None = None
_activity_writer: ActivityWriter | None = None
_repair: LevelRepair | None = None
_exporter: LogExporter | None = None
_query_config = QueryConfig()


async def configure(
    redis_url: str = "redis://localhost:6379",
    *,
    firestore_client: Any = None,
    firestore_config: FirestoreConfig | None = None,
    cache_config: CacheConfig | None = None,
    job_config: JobConfig | None = None,
    query_config: QueryConfig | None = None,
) -> None:
    """Initialize the Redis and Firestore backends.

    Must be called before the MCP tools can function.  Reconfiguring
    waits for jobs started under the previous configuration.
    """
    global _redis, _db, _query, _runner, _archival, _deletion
    global _log_writer, _activity_writer, _repair, _exporter, _query_config
    if _runner is not None or _redis is not None:
        try:
            await shutdown()
        except RuntimeError:
            # Tests may reconfigure across event loops.
            pass

    job_cfg = job_config or JobConfig()
    cache_cfg = cache_config or CacheConfig()
    _query_config = query_config or QueryConfig()

    _redis = Redis.from_url(redis_url)
    _db = firestore_client or create_firestore_client(firestore_config)

    cache = QueryCache(_redis)
    progress = ProgressStore(
        _redis,
        ttl=job_cfg.progress_ttl_seconds,
        result_ttl=job_cfg.result_ttl_seconds,
        publish_events=job_cfg.publish_events,
    )
    _runner = JobRunner(progress)
    _query = LogQueryService(_db, cache, cache_config=cache_cfg)
    _archival = ArchivalJob(
        _db, _runner, cache=cache, config=job_cfg, cache_config=cache_cfg
    )
    _deletion = DeletionJob(_db, _runner, cache=cache, config=job_cfg)
    _log_writer = LogWriter(_db)
    _activity_writer = ActivityWriter(_db)
    _repair = LevelRepair(_db, scan_limit=_query_config.repair_scan_limit)
    _exporter = LogExporter(_db, limit=_query_config.export_limit)
    logger.info("catlogs backends configured")


async def shutdown() -> None:
    """Wait for running jobs, then release backend clients."""
    global _redis, _db, _query, _runner, _archival, _deletion
    global _log_writer, _activity_writer, _repair, _exporter
    if _runner is not None:
        await _runner.drain()
        _runner = None
    if _redis is not None:
        await _redis.aclose()
        _redis = None
    _db = None
    _query = None
    _archival = None
    _deletion = None
    _log_writer = None
    _activity_writer = None
    _repair = None
    _exporter = None


async def _drain_jobs() -> None:
    """Wait for every background job (used by tests)."""
    if _runner is not None:
        await _runner.drain()


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise RuntimeError(f"{name} not configured. Call configure() first.")
    return component


def _get_query() -> LogQueryService:
    return _require(_query, "Query service")


def _get_runner() -> JobRunner:
    return _require(_runner, "Job runner")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _authorize(tool_name: str) -> AuthorizationDecision:
    return authorize_tool(tool_name, get_access_token())


def _denied(decision: AuthorizationDecision) -> dict[str, Any]:
    return {
        "status": "rejected",
        "error_code": decision.error_code,
        "message": decision.message,
    }


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = str(err.get("msg", "Invalid input"))
    return f"{loc}: {msg}" if loc else msg


def _invalid(exc: ValidationError | InvalidParametersError) -> dict[str, Any]:
    if isinstance(exc, ValidationError):
        message = _validation_message(exc)
    else:
        message = str(exc)
    return {
        "status": "rejected",
        "error_code": "invalid_parameters",
        "message": message,
    }


def _finish(operation: str, start: float, result: ResultT) -> ResultT:
    record_latency(
        operation=f"mcp.{operation}",
        duration_ms=(perf_counter() - start) * 1000,
        ok=result.status == "ok",
    )
    return result


# ---------------------------------------------------------------------------
# Tools — reads
# ---------------------------------------------------------------------------


@mcp.tool
async def get_logs(
    page_size: int | None = None,
    cursor: str | None = None,
    filter: str = "all",
    start_date: str | None = None,
    end_date: str | None = None,
    action_type: str | None = None,
    search: str | None = None,
    skip_cache: bool = False,
    tab: str | None = None,
) -> LogsResult:
    """Read one page of live logs, newest first.

    Args:
        page_size: Backend documents read for this page (1-500).
        cursor: Cursor returned by the previous page.
        filter: all, info, warn, error or cat-activity.
        start_date: Inclusive ISO-8601 lower bound.
        end_date: Inclusive ISO-8601 upper bound.
        action_type: Keep only this action type.
        search: Case-insensitive free text; results are never cached.
        skip_cache: Bypass the result cache.
        tab: Pass 'catActivity' to read the activity stream.
    """
    start = perf_counter()
    decision = _authorize("get_logs")
    if not decision.allowed:
        return _finish("get_logs", start, LogsResult(**_denied(decision)))
    query = _get_query()
    try:
        options = LogFilterOptions.model_validate(
            {
                "page_size": page_size or _query_config.default_page_size,
                "cursor": cursor,
                "filter": filter,
                "start_date": start_date,
                "end_date": end_date,
                "action_type": action_type,
                "search": search,
                "skip_cache": skip_cache,
                "tab": tab,
            }
        )
        page = await query.get_logs(options)
    except (ValidationError, InvalidParametersError) as exc:
        return _finish("get_logs", start, LogsResult(**_invalid(exc)))
    return _finish("get_logs", start, LogsResult.from_page(page))


@mcp.tool
async def get_archived_logs(
    page_size: int | None = None,
    cursor: str | None = None,
    filter: str = "all",
    start_date: str | None = None,
    end_date: str | None = None,
    action_type: str | None = None,
    search: str | None = None,
    skip_cache: bool = False,
) -> LogsResult:
    """Read one page of archived logs, newest first.

    Args:
        page_size: Records per page (1-500).
        cursor: Cursor returned by the previous page.
        filter: all, info, warn, error or cat-activity.
        start_date: Inclusive ISO-8601 lower bound.
        end_date: Inclusive ISO-8601 upper bound.
        action_type: Keep only this action type.
        search: Matches message, details or user email.
        skip_cache: Bypass the result cache.
    """
    start = perf_counter()
    decision = _authorize("get_archived_logs")
    if not decision.allowed:
        return _finish("get_archived_logs", start, LogsResult(**_denied(decision)))
    query = _get_query()
    try:
        options = LogFilterOptions.model_validate(
            {
                "page_size": page_size or _query_config.default_page_size,
                "cursor": cursor,
                "filter": filter,
                "start_date": start_date,
                "end_date": end_date,
                "action_type": action_type,
                "search": search,
                "skip_cache": skip_cache,
            }
        )
        page = await query.get_archived_logs(options)
    except (ValidationError, InvalidParametersError) as exc:
        return _finish("get_archived_logs", start, LogsResult(**_invalid(exc)))
    return _finish("get_archived_logs", start, LogsResult.from_page(page))


@mcp.tool
async def get_log_stats(
    start_date: str | None = None,
    end_date: str | None = None,
    filter: str = "all",
    skip_cache: bool = False,
) -> StatsResult:
    """Count live records per level, plus cat activity."""
    start = perf_counter()
    decision = _authorize("get_log_stats")
    if not decision.allowed:
        return _finish("get_log_stats", start, StatsResult(**_denied(decision)))
    query = _get_query()
    try:
        log_filter = LogFilter(filter)
    except ValueError:
        return _finish(
            "get_log_stats",
            start,
            StatsResult(
                status="rejected",
                error_code="invalid_parameters",
                message=f"Unknown filter: {filter}",
            ),
        )
    try:
        stats = await query.get_stats(
            start_date=start_date,
            end_date=end_date,
            log_filter=log_filter,
            skip_cache=skip_cache,
        )
    except InvalidParametersError as exc:
        return _finish("get_log_stats", start, StatsResult(**_invalid(exc)))
    return _finish("get_log_stats", start, StatsResult(stats=stats))


@mcp.tool
async def get_recent_activity(limit: int | None = None) -> ActivityResult:
    """Return the newest activity records."""
    start = perf_counter()
    decision = _authorize("get_recent_activity")
    if not decision.allowed:
        return _finish(
            "get_recent_activity", start, ActivityResult(**_denied(decision))
        )
    writer: ActivityWriter = _require(_activity_writer, "Activity writer")
    size = limit or _query_config.recent_activity_limit
    if size < 1:
        return _finish(
            "get_recent_activity",
            start,
            ActivityResult(
                status="rejected",
                error_code="invalid_parameters",
                message="limit must be positive",
            ),
        )
    activities = await writer.recent(size)
    return _finish("get_recent_activity", start, ActivityResult(activities=activities))


@mcp.tool
async def export_logs(
    filter: str = "all",
    start_date: str | None = None,
    end_date: str | None = None,
    action_type: str | None = None,
    search: str | None = None,
) -> ExportResult:
    """Export live logs as CSV, newest first."""
    start = perf_counter()
    decision = _authorize("export_logs")
    if not decision.allowed:
        return _finish("export_logs", start, ExportResult(**_denied(decision)))
    exporter: LogExporter = _require(_exporter, "Exporter")
    try:
        options = ExportOptions.model_validate(
            {
                "filter": filter,
                "start_date": start_date,
                "end_date": end_date,
                "action_type": action_type,
                "search": search,
            }
        )
        entries = await exporter.collect(options)
    except (ValidationError, InvalidParametersError) as exc:
        return _finish("export_logs", start, ExportResult(**_invalid(exc)))
    return _finish(
        "export_logs", start, ExportResult(csv=to_csv(entries), rows=len(entries))
    )


# ---------------------------------------------------------------------------
# Tools — ingestion
# ---------------------------------------------------------------------------


@mcp.tool
async def create_log(
    message: str,
    level: str = "info",
    details: dict | None = None,
    user_id: str | None = None,
    user_email: str | None = None,
    cat_id: str | None = None,
    cat_name: str | None = None,
    action_type: str | None = None,
) -> CreateResult:
    """Append a system log.

    Args:
        message: Human-readable description.
        level: info, warn or error.
        details: Free-form structured context.
        user_id: Acting user, if any.
        user_email: Acting user's email, if any.
        cat_id: Cat the event concerns, if any.
        cat_name: Name of that cat.
        action_type: Set for cat-activity events.
    """
    start = perf_counter()
    decision = _authorize("create_log")
    if not decision.allowed:
        return _finish("create_log", start, CreateResult(**_denied(decision)))
    writer: LogWriter = _require(_log_writer, "Log writer")
    if not message.strip():
        return _finish(
            "create_log",
            start,
            CreateResult(
                status="rejected",
                error_code="invalid_parameters",
                message="message must not be empty",
            ),
        )
    try:
        log_level = LogLevel(level)
    except ValueError:
        return _finish(
            "create_log",
            start,
            CreateResult(
                status="rejected",
                error_code="invalid_parameters",
                message=f"Unknown level: {level}",
            ),
        )
    log_id = await writer.write(
        log_level,
        message,
        details=details,
        user_id=user_id,
        user_email=user_email,
        cat_id=cat_id,
        cat_name=cat_name,
        action_type=action_type,
    )
    return _finish("create_log", start, CreateResult(id=log_id))


@mcp.tool
async def record_activity(
    action: str,
    target: str,
    target_id: str,
    details: dict | None = None,
    user_id: str | None = None,
    user_email: str | None = None,
) -> CreateResult:
    """Append a user-action record (view, create, update, delete, ...)."""
    start = perf_counter()
    decision = _authorize("record_activity")
    if not decision.allowed:
        return _finish("record_activity", start, CreateResult(**_denied(decision)))
    writer: ActivityWriter = _require(_activity_writer, "Activity writer")
    if not action.strip() or not target.strip() or not target_id.strip():
        return _finish(
            "record_activity",
            start,
            CreateResult(
                status="rejected",
                error_code="invalid_parameters",
                message="action, target and target_id are required",
            ),
        )
    activity_id = await writer.record(
        action,
        target,
        target_id,
        details=details,
        user_id=user_id,
        user_email=user_email,
    )
    return _finish("record_activity", start, CreateResult(id=activity_id))


# ---------------------------------------------------------------------------
# Tools — archive maintenance
# ---------------------------------------------------------------------------


@mcp.tool
async def archive_logs(cutoff_date: str) -> JobStartResult:
    """Start archiving every record older than *cutoff_date*.

    Returns immediately; poll ``get_archive_progress`` with the id.
    """
    start = perf_counter()
    decision = _authorize("archive_logs")
    if not decision.allowed:
        return _finish("archive_logs", start, JobStartResult(**_denied(decision)))
    job: ArchivalJob = _require(_archival, "Archival job")
    try:
        operation_id = await job.start(cutoff_date)
    except InvalidParametersError as exc:
        return _finish("archive_logs", start, JobStartResult(**_invalid(exc)))
    return _finish(
        "archive_logs",
        start,
        JobStartResult(
            operation_id=operation_id,
            message="Archive operation started in background",
        ),
    )


@mcp.tool
async def delete_archived_logs(
    before_date: str | None = None,
    delete_all: bool = False,
) -> JobStartResult:
    """Start deleting archived logs before *before_date*, or all of them."""
    start = perf_counter()
    decision = _authorize("delete_archived_logs")
    if not decision.allowed:
        return _finish(
            "delete_archived_logs", start, JobStartResult(**_denied(decision))
        )
    job: DeletionJob = _require(_deletion, "Deletion job")
    try:
        operation_id = await job.start(before_date=before_date, delete_all=delete_all)
    except InvalidParametersError as exc:
        return _finish("delete_archived_logs", start, JobStartResult(**_invalid(exc)))
    return _finish(
        "delete_archived_logs",
        start,
        JobStartResult(
            operation_id=operation_id,
            message="Delete operation started in background",
        ),
    )


async def _progress(tool_name: str, kind: JobKind, operation_id: str) -> ProgressResult:
    start = perf_counter()
    decision = _authorize(tool_name)
    if not decision.allowed:
        return _finish(tool_name, start, ProgressResult(**_denied(decision)))
    progress = await _get_runner().progress.get_progress(kind, operation_id)
    return _finish(tool_name, start, ProgressResult(progress=progress))


async def _final_result(
    tool_name: str, kind: JobKind, operation_id: str
) -> ProgressResult:
    start = perf_counter()
    decision = _authorize(tool_name)
    if not decision.allowed:
        return _finish(tool_name, start, ProgressResult(**_denied(decision)))
    try:
        progress = await _get_runner().progress.get_final_result(kind, operation_id)
    except JobNotFoundError as exc:
        return _finish(
            tool_name,
            start,
            ProgressResult(status="not_found", error_code="not_found", message=str(exc)),
        )
    except ValueError as exc:
        return _finish(
            tool_name,
            start,
            ProgressResult(status="error", error_code="invalid_progress", message=str(exc)),
        )
    return _finish(tool_name, start, ProgressResult(progress=progress))


@mcp.tool
async def get_archive_progress(operation_id: str) -> ProgressResult:
    """Poll an archival job; unknown ids report status 'unknown'."""
    return await _progress("get_archive_progress", JobKind.archive, operation_id)


@mcp.tool
async def get_archive_final_result(operation_id: str) -> ProgressResult:
    """Return the last snapshot of an archival job, or not_found."""
    return await _final_result("get_archive_final_result", JobKind.archive, operation_id)


@mcp.tool
async def get_delete_progress(operation_id: str) -> ProgressResult:
    """Poll a deletion job; unknown ids report status 'unknown'."""
    return await _progress("get_delete_progress", JobKind.delete, operation_id)


@mcp.tool
async def get_delete_final_result(operation_id: str) -> ProgressResult:
    """Return the last snapshot of a deletion job, or not_found."""
    return await _final_result("get_delete_final_result", JobKind.delete, operation_id)


@mcp.tool
async def fix_log_levels() -> RepairResult:
    """Backfill ``level`` on logs written without one."""
    start = perf_counter()
    decision = _authorize("fix_log_levels")
    if not decision.allowed:
        return _finish(
            "fix_log_levels",
            start,
            RepairResult(success=False, **_denied(decision)),
        )
    repair: LevelRepair = _require(_repair, "Level repair")
    return _finish("fix_log_levels", start, await repair.run())
