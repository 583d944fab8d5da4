"""In-process metrics for tool latency, job duration and cache efficiency."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass
class LatencySummary:
    """Aggregated latency metrics for one operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, duration_ms: float, ok: bool) -> None:
        self.count += 1
        if not ok:
            self.error_count += 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        if self.count == 1:
            self.min_ms = self.max_ms = duration_ms
        else:
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.total_ms / self.count if self.count else 0.0, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


@dataclass
class CacheSummary:
    """Hit/miss counters for one cache namespace."""

    hits: int = 0
    misses: int = 0

    def as_dict(self) -> dict[str, float | int]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_ratio": round(self.hits / lookups, 3) if lookups else 0.0,
        }


class _MetricsRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._latency: dict[str, LatencySummary] = {}
        self._cache: dict[str, CacheSummary] = {}

    def record_latency(self, operation: str, duration_ms: float, ok: bool) -> None:
        normalized = max(float(duration_ms), 0.0)
        with self._lock:
            self._latency.setdefault(operation, LatencySummary()).add(normalized, ok)
        logger.info(
            "latency operation=%s duration_ms=%.3f ok=%s",
            operation,
            normalized,
            ok,
        )

    def record_cache(self, namespace: str, hit: bool) -> None:
        with self._lock:
            summary = self._cache.setdefault(namespace, CacheSummary())
            if hit:
                summary.hits += 1
            else:
                summary.misses += 1

    def latency_snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {op: s.as_dict() for op, s in sorted(self._latency.items())}

    def cache_snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {ns: s.as_dict() for ns, s in sorted(self._cache.items())}

    def reset(self) -> None:
        with self._lock:
            self._latency.clear()
            self._cache.clear()


_RECORDER = _MetricsRecorder()


def record_latency(*, operation: str, duration_ms: float, ok: bool = True) -> None:
    """Record one latency sample."""
    _RECORDER.record_latency(operation, duration_ms, ok)


def record_cache_lookup(*, namespace: str, hit: bool) -> None:
    """Count one cache lookup under *namespace* (e.g. ``logs``)."""
    _RECORDER.record_cache(namespace, hit)


def latency_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current in-process latency aggregates."""
    return _RECORDER.latency_snapshot()


def cache_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current cache hit/miss counters."""
    return _RECORDER.cache_snapshot()


def reset_metrics() -> None:
    """Clear all aggregates (test helper)."""
    _RECORDER.reset()
