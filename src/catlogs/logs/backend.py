"""Thin helpers over the async Firestore client."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from google.cloud import firestore  # type: ignore[import-untyped]
from google.cloud.firestore_v1.base_query import FieldFilter  # type: ignore[import-untyped]

from catlogs.config import FirestoreConfig

DESCENDING = firestore.Query.DESCENDING
ASCENDING = firestore.Query.ASCENDING
SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP

TIMESTAMP_FIELD = "timestamp"


def create_firestore_client(config: FirestoreConfig | None = None) -> firestore.AsyncClient:
    """Build an async Firestore client from *config*."""
    cfg = config or FirestoreConfig()
    return firestore.AsyncClient(project=cfg.project_id, database=cfg.database)


def where(query: Any, field: str, op: str, value: Any) -> Any:
    """Apply one field filter using the keyword form the client expects."""
    return query.where(filter=FieldFilter(field, op, value))


def in_time_range(
    query: Any,
    start: datetime | None,
    end: datetime | None,
) -> Any:
    """Restrict *query* to ``start <= timestamp <= end`` for the given bounds."""
    if start is not None:
        query = where(query, TIMESTAMP_FIELD, ">=", start)
    if end is not None:
        query = where(query, TIMESTAMP_FIELD, "<=", end)
    return query


def newest_first(query: Any) -> Any:
    return query.order_by(TIMESTAMP_FIELD, direction=DESCENDING)


async def count(query: Any) -> int:
    """Return the number of documents matching *query* via an aggregation."""
    results = await query.count(alias="total").get()
    if not results or not results[0]:
        return 0
    return int(results[0][0].value)
