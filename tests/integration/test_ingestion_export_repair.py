"""Writers, CSV export and level repair against the Firestore emulator."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from catlogs.logs import ActivityWriter
from catlogs.logs import LevelRepair
from catlogs.logs import LogExporter
from catlogs.logs import LogWriter
from catlogs.models import ExportOptions
from catlogs.models import LOGS_COLLECTION
from catlogs.models import LogLevel


def _ago(**kwargs) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**kwargs)


class TestLogWriter:
    async def test_write_persists_camel_case_document(self, firestore_client, seed):
        writer = LogWriter(firestore_client)

        log_id = await writer.write(
            LogLevel.warn,
            "Low litter stock",
            details={"shelter": "north"},
            user_id="u1",
            user_email="ops@example.org",
            cat_id="c1",
            cat_name="Tom",
        )

        doc = await seed.get(LOGS_COLLECTION, log_id)
        assert doc is not None
        assert doc["level"] == "warn"
        assert doc["message"] == "Low litter stock"
        assert doc["userEmail"] == "ops@example.org"
        assert doc["catName"] == "Tom"
        assert doc["actionType"] is None
        assert isinstance(doc["timestamp"], datetime)

    async def test_level_helpers(self, firestore_client, seed):
        writer = LogWriter(firestore_client)
        log_id = await writer.error("Payment failed")
        doc = await seed.get(LOGS_COLLECTION, log_id)
        assert doc is not None
        assert doc["level"] == "error"


class TestActivityWriter:
    async def test_recent_newest_first_and_limited(self, firestore_client):
        writer = ActivityWriter(firestore_client)
        for i in range(4):
            await writer.record(
                "update",
                "cat",
                f"cat-{i}",
                details={"name": f"Cat {i}"},
                timestamp=_ago(minutes=10 - i),
            )

        recent = await writer.recent(limit=3)

        assert [entry.cat_id for entry in recent] == ["cat-3", "cat-2", "cat-1"]
        assert all(entry.id.startswith("activity:") for entry in recent)
        assert recent[0].cat_name == "Cat 3"


class TestExport:
    async def test_filters_and_order(self, firestore_client, seed):
        await seed.log("a", timestamp=_ago(minutes=3), level="error", message="Disk full")
        await seed.log("b", timestamp=_ago(minutes=2), level="info", message="Started")
        await seed.log(
            "c",
            timestamp=_ago(minutes=1),
            level="error",
            message="Save failed, retrying",
            catName="Tom",
        )
        exporter = LogExporter(firestore_client)

        csv_text = await exporter.export(ExportOptions(filter="error"))

        lines = csv_text.split("\n")
        assert lines[0].startswith("Timestamp,Level,Message,")
        assert len(lines) == 3
        assert '"Save failed, retrying"' in lines[1]
        assert ",Disk full," in lines[2]

    async def test_search_and_cat_activity(self, firestore_client, seed):
        await seed.log("a", timestamp=_ago(minutes=2), message="Cat adopted", actionType="adopt")
        await seed.log("b", timestamp=_ago(minutes=1), message="Cat fed")
        exporter = LogExporter(firestore_client)

        cats = await exporter.collect(ExportOptions(filter="cat-activity"))
        searched = await exporter.collect(ExportOptions(search="FED"))

        assert [entry.id for entry in cats] == ["a"]
        assert [entry.id for entry in searched] == ["b"]

    async def test_limit_applies(self, firestore_client, seed):
        for i in range(5):
            await seed.log(f"l{i}", timestamp=_ago(minutes=i + 1))
        exporter = LogExporter(firestore_client, limit=2)

        entries = await exporter.collect(ExportOptions())

        assert [entry.id for entry in entries] == ["l0", "l1"]


class TestLevelRepair:
    async def test_backfills_missing_levels(self, firestore_client, seed):
        await seed.log("err", timestamp=_ago(minutes=1), level=None, message="Upload failed")
        await seed.log("warn", timestamp=_ago(minutes=2), level=None, message="Use caution")
        await seed.log(
            "cat",
            timestamp=_ago(minutes=3),
            level=None,
            message="Exception while saving cat",
            actionType="update",
        )
        await seed.log("ok", timestamp=_ago(minutes=4), level="warn", message="error text")

        result = await LevelRepair(firestore_client).run()

        assert result.success is True
        assert result.updated == 3
        assert result.message == "Fixed 3 log entries"
        assert (await seed.get(LOGS_COLLECTION, "err"))["level"] == "error"
        assert (await seed.get(LOGS_COLLECTION, "warn"))["level"] == "warn"
        assert (await seed.get(LOGS_COLLECTION, "cat"))["level"] == "info"
        assert (await seed.get(LOGS_COLLECTION, "ok"))["level"] == "warn"

    async def test_nothing_to_fix(self, firestore_client, seed):
        await seed.log("ok", timestamp=_ago(minutes=1), level="info")

        result = await LevelRepair(firestore_client).run()

        assert result.updated == 0
        assert result.message == "No logs need fixing"

    async def test_scan_limit(self, firestore_client, seed):
        for i in range(3):
            await seed.log(f"n{i}", timestamp=_ago(minutes=i + 1), level=None)

        first = await LevelRepair(firestore_client, scan_limit=2).run()
        second = await LevelRepair(firestore_client, scan_limit=2).run()

        assert first.updated == 2
        assert second.updated == 1
