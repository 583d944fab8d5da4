"""Configuration for the catlogs backends.

Each subsystem gets a frozen dataclass whose defaults match production;
tests and ``server.configure()`` override individual fields by passing
their own instances.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FirestoreConfig:
    """Firestore client settings.

    When ``FIRESTORE_EMULATOR_HOST`` is set in the environment the client
    library targets the emulator and ignores credentials.
    """

    project_id: str | None = None
    database: str = "(default)"


@dataclass(frozen=True)
class CacheConfig:
    """TTLs for the Redis query-result cache."""

    log_page_ttl_seconds: int = 3600
    stats_ttl_seconds: int = 900
    invalidate_after_archive: bool = True


@dataclass(frozen=True)
class JobConfig:
    """Batch sizes and progress retention for the background jobs."""

    archive_batch_size: int = 250
    # Firestore caps a WriteBatch at 500 operations.
    delete_batch_size: int = 500
    progress_ttl_seconds: int = 3600
    # Applies to completed and failed snapshots.
    result_ttl_seconds: int = 7 * 24 * 3600
    publish_events: bool = True


@dataclass(frozen=True)
class QueryConfig:
    """Paging and scan limits for reads over the log collections."""

    default_page_size: int = 25
    export_limit: int = 10_000
    repair_scan_limit: int = 500
    recent_activity_limit: int = 10
