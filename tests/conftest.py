"""
Pytest configuration and shared fixtures.
"""

import json
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from approval_gate.api.auth import create_access_token
from approval_gate.api.main import create_app
from approval_gate.approve import ApproveContext, Gate, JobTypeRegistry, ZlibArgsCodec
from approval_gate.broker import RedisBroker
from approval_gate.constants import BROKER_DELAYED_PREFIX, BROKER_QUEUE_PREFIX
from approval_gate.types.job import JobTypeDescriptor
from tests.constants import (
    AUTO_DELETE_JOB,
    BASIC_JOB,
    COMPRESSED_JOB,
    MAX_ACTIVE_JOB,
    MAX_ACTIVE_JOBS,
    TEST_PREFIX,
)


@pytest_asyncio.fixture
async def redis() -> AsyncGenerator[FakeAsyncRedis, None]:
    """Create a Redis client on a fresh in-memory server."""
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)

    yield client

    await client.aclose()


@pytest.fixture
def job_types() -> JobTypeRegistry:
    """Create the job types used across the tests."""
    return JobTypeRegistry(
        [
            JobTypeDescriptor(name=BASIC_JOB, queue_name="basic"),
            JobTypeDescriptor(
                name=MAX_ACTIVE_JOB,
                queue_name="limited",
                default_queue_name="max_active",
                max_active_jobs=MAX_ACTIVE_JOBS,
            ),
            JobTypeDescriptor(
                name=AUTO_DELETE_JOB,
                queue_name="basic",
                auto_delete_approval_key=True,
            ),
            JobTypeDescriptor(
                name=COMPRESSED_JOB,
                queue_name="compressed",
                codec=ZlibArgsCodec(),
            ),
        ]
    )


@pytest.fixture
def broker(redis: FakeAsyncRedis, job_types: JobTypeRegistry) -> RedisBroker:
    return RedisBroker(redis, job_types)


@pytest.fixture
def context(
    redis: FakeAsyncRedis,
    broker: RedisBroker,
    job_types: JobTypeRegistry,
) -> ApproveContext:
    """Create an approve context over the fake Redis."""
    return ApproveContext(
        redis=redis,
        broker=broker,
        job_types=job_types,
        prefix=TEST_PREFIX,
    )


@pytest.fixture
def gate(context: ApproveContext) -> Gate:
    return Gate(context)


@pytest.fixture
def submitted(
    redis: FakeAsyncRedis,
) -> Callable[[str], Awaitable[list[dict[str, Any]]]]:
    """Read the payloads submitted to a broker queue, oldest first."""

    async def read(queue: str) -> list[dict[str, Any]]:
        raw = await redis.lrange(f"{BROKER_QUEUE_PREFIX}{queue}", 0, -1)
        return [json.loads(payload) for payload in raw]

    return read


@pytest.fixture
def scheduled(
    redis: FakeAsyncRedis,
) -> Callable[[str], Awaitable[list[tuple[dict[str, Any], float]]]]:
    """Read the payloads scheduled on a broker queue, with their times."""

    async def read(queue: str) -> list[tuple[dict[str, Any], float]]:
        raw = await redis.zrange(f"{BROKER_DELAYED_PREFIX}{queue}", 0, -1, withscores=True)
        return [(json.loads(payload), score) for payload, score in raw]

    return read


@pytest.fixture
def app(context: ApproveContext) -> FastAPI:
    """Create a FastAPI app serving the test context."""
    return create_app(context)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Create authentication headers for testing."""
    token = create_access_token(operator="test-operator")
    return {
        "Authorization": f"Bearer {token}",
    }
