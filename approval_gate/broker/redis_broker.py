"""
Redis-list broker using a Resque-compatible key layout.
"""

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from redis.asyncio import Redis

from approval_gate.constants import (
    BROKER_DELAYED_PREFIX,
    BROKER_QUEUE_PREFIX,
    BROKER_QUEUES_KEY,
)

if TYPE_CHECKING:
    from approval_gate.approve.job_types import JobTypeRegistry

logger = logging.getLogger(__name__)


class RedisBroker:
    """
    Broker that pushes JSON payloads onto Redis lists.

    Immediate jobs are appended to ``queue:<name>``; scheduled jobs are added
    to the ``delayed:<name>`` sorted set, scored by epoch seconds.
    """

    def __init__(self, redis: Redis, job_types: "JobTypeRegistry"):
        self._redis = redis
        self._job_types = job_types

    def queue_for(self, job_type: str) -> str:
        return self._job_types.get(job_type).queue_name

    async def submit(self, queue: str, job_type: str, args: list[Any]) -> bool:
        payload = self._encode(job_type, args)

        await self._redis.sadd(BROKER_QUEUES_KEY, queue)
        await self._redis.rpush(f"{BROKER_QUEUE_PREFIX}{queue}", payload)

        logger.info(
            "Submitted job",
            extra={"queue": queue, "job_type": job_type},
        )
        return True

    async def submit_at(
        self,
        queue: str,
        at: datetime,
        job_type: str,
        args: list[Any],
    ) -> bool:
        payload = self._encode(job_type, args)

        await self._redis.zadd(
            f"{BROKER_DELAYED_PREFIX}{queue}",
            {payload: at.timestamp()},
        )

        logger.info(
            "Scheduled job",
            extra={"queue": queue, "job_type": job_type, "at": at.isoformat()},
        )
        return True

    @staticmethod
    def _encode(job_type: str, args: list[Any]) -> str:
        # The id keeps identical scheduled payloads distinct in the sorted set
        return json.dumps({"class": job_type, "args": args, "id": uuid4().hex})
