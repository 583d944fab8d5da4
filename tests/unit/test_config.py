"""Unit tests for configuration dataclasses."""

from dataclasses import FrozenInstanceError

import pytest

from catlogs.config import CacheConfig
from catlogs.config import FirestoreConfig
from catlogs.config import JobConfig
from catlogs.config import QueryConfig


# ---------------------------------------------------------------------------
# FirestoreConfig
# ---------------------------------------------------------------------------


class TestFirestoreConfig:
    def test_defaults(self):
        cfg = FirestoreConfig()
        assert cfg.project_id is None
        assert cfg.database == "(default)"


# ---------------------------------------------------------------------------
# CacheConfig
# ---------------------------------------------------------------------------


class TestCacheConfig:
    def test_defaults(self):
        cfg = CacheConfig()
        assert cfg.log_page_ttl_seconds == 3600
        assert cfg.stats_ttl_seconds == 900
        assert cfg.invalidate_after_archive is True


# ---------------------------------------------------------------------------
# JobConfig
# ---------------------------------------------------------------------------


class TestJobConfig:
    def test_defaults(self):
        cfg = JobConfig()
        assert cfg.archive_batch_size == 250
        assert cfg.delete_batch_size == 500
        assert cfg.progress_ttl_seconds == 3600
        assert cfg.result_ttl_seconds == 7 * 24 * 3600
        assert cfg.publish_events is True

    def test_override(self):
        cfg = JobConfig(archive_batch_size=10)
        assert cfg.archive_batch_size == 10
        assert cfg.delete_batch_size == 500


# ---------------------------------------------------------------------------
# QueryConfig
# ---------------------------------------------------------------------------


class TestQueryConfig:
    def test_defaults(self):
        cfg = QueryConfig()
        assert cfg.default_page_size == 25
        assert cfg.export_limit == 10_000
        assert cfg.repair_scan_limit == 500
        assert cfg.recent_activity_limit == 10


class TestFrozen:
    @pytest.mark.parametrize(
        "cfg,field",
        [
            (FirestoreConfig(), "database"),
            (CacheConfig(), "stats_ttl_seconds"),
            (JobConfig(), "archive_batch_size"),
            (QueryConfig(), "export_limit"),
        ],
    )
    def test_cannot_mutate(self, cfg, field):
        with pytest.raises(FrozenInstanceError):
            setattr(cfg, field, 1)
