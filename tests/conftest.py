"""Root conftest — session-scoped testcontainer fixtures.

A Redis 7 container and a Firestore emulator container, shared across
the entire test session.  Individual tests clean each store via
fixtures.
"""

from __future__ import annotations

import logging
import os
import time
import urllib.request
from pathlib import Path

import pytest
import redis as sync_redis
from dotenv import load_dotenv
from google.cloud import firestore  # type: ignore[import-untyped]
from redis.asyncio import Redis
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

logger = logging.getLogger(__name__)

# Load repository-root .env for test opt-ins (existing env vars stay authoritative).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)

FIRESTORE_PROJECT = "catlogs-test"
FIRESTORE_EMULATOR_IMAGE = "gcr.io/google.com/cloudsdktool/google-cloud-cli:emulators"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def redis_container():
    """Spin up a Redis 7 container and yield its URL.

    Session-scoped: one container for the entire test run.
    """
    container = DockerContainer("redis:7-alpine").with_exposed_ports(6379)
    with container as c:
        host = c.get_container_host_ip()
        port = c.get_exposed_port(6379)
        url = f"redis://{host}:{port}"

        # Wait for Redis readiness
        r = sync_redis.Redis(host=host, port=int(port))
        max_attempts = 30
        for attempt in range(max_attempts):
            try:
                r.ping()
                r.close()
                break
            except sync_redis.RedisError as exc:
                if attempt == max_attempts - 1:
                    r.close()
                    raise
                logger.debug(
                    "Redis not ready (attempt %d/%d): %s",
                    attempt + 1,
                    max_attempts,
                    exc,
                )
                time.sleep(1)

        yield url


@pytest.fixture()
async def redis_client(redis_container):
    """Yield an async Redis client connected to the test container."""
    client = Redis.from_url(redis_container)
    yield client
    await client.aclose()


@pytest.fixture(autouse=True)
async def clean_redis(redis_client):
    """Flush Redis between tests."""
    await redis_client.flushdb()
    yield
    await redis_client.flushdb()


# ---------------------------------------------------------------------------
# Firestore emulator
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def firestore_emulator():
    """Start the Firestore emulator and point the client library at it.

    Yields the ``host:port`` of the emulator.
    """
    container = (
        DockerContainer(FIRESTORE_EMULATOR_IMAGE)
        .with_exposed_ports(8080)
        .with_command(
            "gcloud emulators firestore start --host-port=0.0.0.0:8080 --quiet"
        )
    )
    with container as c:
        wait_for_logs(c, "Dev App Server is now running", timeout=120)
        host = c.get_container_host_ip()
        port = c.get_exposed_port(8080)
        emulator_host = f"{host}:{port}"

        previous = os.environ.get("FIRESTORE_EMULATOR_HOST")
        os.environ["FIRESTORE_EMULATOR_HOST"] = emulator_host
        try:
            yield emulator_host
        finally:
            if previous is None:
                os.environ.pop("FIRESTORE_EMULATOR_HOST", None)
            else:
                os.environ["FIRESTORE_EMULATOR_HOST"] = previous


def _clear_emulator(emulator_host: str) -> None:
    url = (
        f"http://{emulator_host}/emulator/v1/projects/{FIRESTORE_PROJECT}"
        "/databases/(default)/documents"
    )
    request = urllib.request.Request(url, method="DELETE")
    with urllib.request.urlopen(request, timeout=10) as response:
        response.read()


@pytest.fixture()
async def firestore_client(firestore_emulator):
    """Yield an async Firestore client on an emptied emulator database."""
    _clear_emulator(firestore_emulator)
    client = firestore.AsyncClient(project=FIRESTORE_PROJECT)
    yield client
    _clear_emulator(firestore_emulator)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_metrics():
    """Reset in-process latency and cache metrics between tests."""
    from catlogs.observability import reset_metrics

    reset_metrics()
    yield
    reset_metrics()
