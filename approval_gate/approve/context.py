"""
Shared handles injected into every approval component.
"""

from dataclasses import dataclass

from redis.asyncio import Redis

from approval_gate.approve.job_types import JobTypeRegistry
from approval_gate.broker.base import Broker
from approval_gate.broker.redis_broker import RedisBroker
from approval_gate.config import get_settings
from approval_gate.constants import (
    APPROVAL_KEY_LIST_KEY,
    DEFAULT_KEY_PREFIX,
    JOB_QUEUE_KEY,
    PAUSED_COUNT_SUFFIX,
    PAUSED_SUFFIX,
    PENDING_JOB_KEY,
    RUNNING_SUFFIX,
)


@dataclass(frozen=True)
class ApproveContext:
    """
    Store handle, broker and job-type registry shared by the gate.

    Also owns the Redis key layout, all of which lives under `prefix`.
    """

    redis: Redis
    broker: Broker
    job_types: JobTypeRegistry
    prefix: str = DEFAULT_KEY_PREFIX

    @property
    def pending_job_prefix(self) -> str:
        return f"{self.prefix}.{PENDING_JOB_KEY}."

    def pending_job_key(self, job_id: str) -> str:
        return f"{self.pending_job_prefix}{job_id}"

    def job_queue_key(self, approval_key: str) -> str:
        return f"{self.prefix}.{JOB_QUEUE_KEY}.{approval_key}"

    def paused_key(self, approval_key: str) -> str:
        return f"{self.job_queue_key(approval_key)}.{PAUSED_SUFFIX}"

    def paused_count_key(self, approval_key: str) -> str:
        return f"{self.job_queue_key(approval_key)}.{PAUSED_COUNT_SUFFIX}"

    def running_key(self, approval_key: str) -> str:
        return f"{self.job_queue_key(approval_key)}.{RUNNING_SUFFIX}"

    @property
    def approval_key_list_key(self) -> str:
        return f"{self.prefix}.{APPROVAL_KEY_LIST_KEY}"


def create_context(
    redis: Redis,
    job_types: JobTypeRegistry | None = None,
    broker: Broker | None = None,
    prefix: str | None = None,
) -> ApproveContext:
    """
    Build an approve context, filling in defaults from settings.

    Args:
        redis: Store handle. Must decode responses to str.
        job_types: Known job types. Defaults to an empty registry.
        broker: Broker released jobs go to. Defaults to a RedisBroker on
            the same store.
        prefix: Key prefix. Defaults to the approve_key_prefix setting.

    Returns:
        The approve context.
    """
    job_types = job_types if job_types is not None else JobTypeRegistry()

    return ApproveContext(
        redis=redis,
        broker=broker if broker is not None else RedisBroker(redis, job_types),
        job_types=job_types,
        prefix=prefix or get_settings().approve_key_prefix,
    )
