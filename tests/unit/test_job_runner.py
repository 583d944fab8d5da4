"""Job runner unit tests against a real Redis container.

The work functions here are plain coroutines, so no Firestore is needed.
"""

from __future__ import annotations

import asyncio

import pytest

from catlogs.jobs import JobKind
from catlogs.jobs import JobProgress
from catlogs.jobs import JobRunner
from catlogs.jobs import JobStatus
from catlogs.jobs import ProgressStore
from catlogs.observability import latency_metrics_snapshot


@pytest.fixture()
def store(redis_client) -> ProgressStore:
    return ProgressStore(redis_client)


@pytest.fixture()
def runner(store) -> JobRunner:
    return JobRunner(store)


class TestLaunch:
    async def test_returns_id_with_pending_snapshot(self, runner, store):
        release = asyncio.Event()

        async def work(operation_id: str) -> None:
            await release.wait()

        operation_id = await runner.launch(JobKind.archive, work)

        progress = await store.get_progress(JobKind.archive, operation_id)
        assert progress.status is JobStatus.pending
        assert operation_id in runner.running()

        release.set()
        await runner.drain()
        assert runner.running() == []

    async def test_ids_are_unique(self, runner):
        async def work(operation_id: str) -> None:
            return None

        ids = {await runner.launch(JobKind.delete, work) for _ in range(5)}
        await runner.drain()
        assert len(ids) == 5

    async def test_work_receives_operation_id(self, runner, store):
        async def work(operation_id: str) -> None:
            await store.write(
                JobProgress.finished(
                    operation_id, JobKind.archive, total=1, processed=1, message="ok"
                )
            )

        operation_id = await runner.launch(JobKind.archive, work)
        await runner.wait(operation_id)

        result = await store.get_final_result(JobKind.archive, operation_id)
        assert result.message == "ok"


class TestFailure:
    async def test_exception_becomes_failed_snapshot(self, runner, store):
        async def work(operation_id: str) -> None:
            await store.write(
                JobProgress.running(operation_id, JobKind.archive, total=10, processed=4)
            )
            raise RuntimeError("firestore unavailable")

        operation_id = await runner.launch(JobKind.archive, work)
        await runner.drain()

        result = await store.get_final_result(JobKind.archive, operation_id)
        assert result.status is JobStatus.failed
        assert result.error is True
        assert result.completed is True
        assert result.message == "firestore unavailable"
        # Counters never go backwards on failure.
        assert result.processed == 4
        assert result.total == 10

    async def test_exception_without_message_uses_type_name(self, runner, store):
        async def work(operation_id: str) -> None:
            raise KeyError

        operation_id = await runner.launch(JobKind.delete, work)
        await runner.drain()

        result = await store.get_final_result(JobKind.delete, operation_id)
        assert result.message == "KeyError"

    async def test_failure_recorded_in_latency_metrics(self, runner):
        async def work(operation_id: str) -> None:
            raise RuntimeError("boom")

        await runner.launch(JobKind.archive, work)
        await runner.drain()

        metrics = latency_metrics_snapshot()["job.archive"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 1


class TestDrain:
    async def test_waits_for_jobs_launched_while_draining(self, runner, store):
        done: list[str] = []

        async def child(operation_id: str) -> None:
            await asyncio.sleep(0.05)
            done.append("child")

        async def parent(operation_id: str) -> None:
            await runner.launch(JobKind.delete, child)
            done.append("parent")

        await runner.launch(JobKind.archive, parent)
        await runner.drain()

        assert sorted(done) == ["child", "parent"]

    async def test_drain_with_nothing_running(self, runner):
        await runner.drain()
        assert runner.running() == []
