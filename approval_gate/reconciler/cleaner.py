"""
Repairs drift between pending job records, their queues and the key list.

Pending job records are authoritative. A crash between popping an id and
submitting it, or between saving a record and listing it, leaves a record
its queue no longer points at; cleanup_jobs puts the id back.
"""

import logging

from approval_gate.approve.approval_key_list import ApprovalKeyList
from approval_gate.approve.context import ApproveContext
from approval_gate.approve.pending_job import PendingJob
from approval_gate.approve.pending_job_queue import PendingJobQueue
from approval_gate.constants import SPAN_CLEANUP_JOBS, SPAN_CLEANUP_QUEUES
from approval_gate.observability.metrics import get_metrics
from approval_gate.observability.tracing import get_tracer

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 500


class Cleaner:
    """Reconciliation passes over everything stored under the key prefix."""

    def __init__(self, context: ApproveContext):
        self._context = context
        self._redis = context.redis
        self._key_list = ApprovalKeyList(context)
        self._metrics = get_metrics()

    async def purge_all(self) -> int:
        """
        Delete every key under the approval prefix.

        Only for administrative resets and tests: pending jobs are lost.

        Returns:
            Number of keys deleted.
        """
        batch: list[str] = []
        deleted = 0

        async for key in self._redis.scan_iter(
            match=f"{self._context.prefix}.*", count=SCAN_BATCH_SIZE
        ):
            batch.append(key)
            if len(batch) >= SCAN_BATCH_SIZE:
                deleted += await self._redis.delete(*batch)
                batch = []

        if batch:
            deleted += await self._redis.delete(*batch)

        logger.warning(
            "Purged all approval state",
            extra={"prefix": self._context.prefix, "keys_deleted": deleted},
        )
        return deleted

    async def cleanup_jobs(self) -> int:
        """
        Re-link every stored pending job into its queue and the key list.

        Records are never modified and ids already listed are left alone.

        Returns:
            Number of ids that had to be put back into their queue.
        """
        prefix = self._context.pending_job_prefix
        restored = 0

        with get_tracer().start_as_current_span(SPAN_CLEANUP_JOBS) as span:
            async for key in self._redis.scan_iter(
                match=f"{prefix}*", count=SCAN_BATCH_SIZE
            ):
                job = await PendingJob.fetch(self._context, key[len(prefix):])
                if job.approval_key is None:
                    continue

                if await job.queue.verify_job(job):
                    restored += 1

            span.set_attribute("restored", restored)

        self._metrics.record_reconcile_repairs("job", restored)
        if restored:
            logger.info("Restored pending jobs into their queues", extra={"restored": restored})

        return restored

    async def cleanup_queues(self) -> int:
        """
        Drop registered approval keys whose queue is empty.

        Returns:
            Number of approval keys dropped.
        """
        dropped = 0

        with get_tracer().start_as_current_span(SPAN_CLEANUP_QUEUES) as span:
            for approval_key in await self._key_list.queue_keys():
                if await PendingJobQueue(self._context, approval_key).num_jobs() > 0:
                    continue

                if await self._key_list.remove_key(approval_key):
                    dropped += 1

            span.set_attribute("dropped", dropped)

        self._metrics.record_reconcile_repairs("queue", dropped)
        self._metrics.update_approval_queues(await self._key_list.num_queues())
        if dropped:
            logger.info("Dropped empty approval queues", extra={"dropped": dropped})

        return dropped
