"""
The queue of pending jobs for one approval key.

The queue is a Redis list of pending job ids in insertion order. Alongside
it live a paused flag, a count of release attempts ignored while paused, and
a running-job gauge used for concurrency budgets.
"""

import asyncio
import logging
from datetime import datetime

from approval_gate.approve.context import ApproveContext
from approval_gate.approve.pending_job import PendingJob
from approval_gate.constants import DEFAULT_PAGE_SIZE
from approval_gate.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


def coerce_page_size(page_size: int | str | None) -> int:
    """Coerce a requested page size to a positive integer."""
    try:
        page_size = int(page_size) if page_size is not None else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return page_size if page_size >= 1 else DEFAULT_PAGE_SIZE


class PendingJobQueue:
    """
    FIFO queue of jobs waiting on a single approval key.

    Every mutation is a single atomic Redis command, so any number of
    processes can share a queue. Pops hand each id to exactly one caller.
    """

    def __init__(self, context: ApproveContext, approval_key: str):
        self._context = context
        self._redis = context.redis
        self._metrics = get_metrics()
        self.approval_key = approval_key

    def __repr__(self) -> str:
        return f"PendingJobQueue(approval_key={self.approval_key!r})"

    async def pause(self) -> None:
        """Stop releasing jobs until resumed; new jobs are still accepted."""
        await self._redis.set(self._pause_key, "1")
        await self._redis.set(self._paused_count_key, 0)

        logger.info("Paused approval queue", extra={"approval_key": self.approval_key})

    async def paused(self) -> bool:
        return bool(await self._redis.get(self._pause_key))

    async def num_ignored(self) -> int:
        """Number of release attempts skipped since the queue was paused."""
        return int(await self._redis.get(self._paused_count_key) or 0)

    async def resume(self) -> None:
        await self._redis.delete(self._paused_count_key, self._pause_key)

        logger.info("Resumed approval queue", extra={"approval_key": self.approval_key})

    async def delete(self) -> int:
        """
        Delete every job in the queue, whether or not it is paused.

        Returns:
            Number of jobs deleted.
        """
        return await self.remove_all()

    async def remove_job(self, job: PendingJob) -> None:
        """
        Unlink a job from the queue.

        Removes the approval key from the key list when the queue empties
        and the job type asks for it.
        """
        await self._redis.lrem(self._queue_key, 0, job.id)

        await self._remove_approval_key(job)

    async def verify_job(self, job: PendingJob) -> bool:
        """
        Make sure a stored job is registered and listed in this queue.

        Args:
            job: A loaded pending job whose approval key is this queue's.

        Returns:
            True if the job's id had to be put back into the queue.
        """
        from approval_gate.approve.approval_key_list import ApprovalKeyList

        await ApprovalKeyList(self._context).add_key(self.approval_key)

        if await self._redis.lpos(self._queue_key, job.id) is not None:
            return False

        await self._redis.lpush(self._queue_key, job.id)

        # A release may have deleted the record since it was fetched
        if not await self._redis.exists(self._context.pending_job_key(job.id)):
            await self._redis.lrem(self._queue_key, 0, job.id)
            return False

        logger.warning(
            "Restored pending job missing from its queue",
            extra={"job_id": job.id, "approval_key": self.approval_key},
        )
        return True

    async def add_job(self, job: PendingJob) -> None:
        """Persist a job and append it to the tail of the queue."""
        # Saved before it is listed so a concurrent release never pops an
        # id whose record is not written yet
        await job.save()
        await self._redis.rpush(self._queue_key, job.id)

    async def approve_one(self) -> bool:
        """
        Release the job at the head of the queue.

        Returns:
            True if a job was released, False if the queue is paused or empty.
        """
        if await self._paused_job_skip():
            return False

        job_id = await self._redis.lpop(self._queue_key)

        return await self._enqueue_job(job_id)

    async def approve_num(self, num_approve: int) -> int:
        """
        Release up to `num_approve` jobs from the head of the queue.

        Returns:
            Number of jobs released.
        """
        released = 0
        for _ in range(num_approve):
            if not await self.approve_one():
                break
            released += 1
        return released

    async def approve_all(self) -> int:
        """
        Release jobs until the queue is empty (or paused).

        Returns:
            Number of jobs released.
        """
        released = 0
        while await self.approve_one():
            released += 1
        return released

    async def approve_job(self, job: PendingJob) -> bool:
        """
        Release a specific job, wherever it sits in the queue.

        The id is unlinked first; only the caller that unlinked it submits.
        An operator picking a job by id overrides the pause flag.

        Returns:
            True if this call released the job.
        """
        if not await self._redis.lrem(self._queue_key, 0, job.id):
            return False

        return await self._enqueue_job(job.id)

    async def pop_job(self) -> bool:
        """Release the most recently added job."""
        if await self._paused_job_skip():
            return False

        job_id = await self._redis.rpop(self._queue_key)

        return await self._enqueue_job(job_id)

    async def remove_one(self) -> bool:
        """Delete the job at the head of the queue without releasing it."""
        job_id = await self._redis.lpop(self._queue_key)

        return await self._delete_job(job_id)

    async def remove_num(self, num_remove: int) -> int:
        removed = 0
        for _ in range(num_remove):
            if not await self.remove_one():
                break
            removed += 1
        return removed

    async def remove_all(self) -> int:
        removed = 0
        while await self.remove_one():
            removed += 1
        return removed

    async def remove_job_pop(self) -> bool:
        """Delete the most recently added job without releasing it."""
        job_id = await self._redis.rpop(self._queue_key)

        return await self._delete_job(job_id)

    async def increment_running(self) -> int:
        return await self._redis.incr(self._running_key)

    async def decrement_running(self) -> int:
        return await self._redis.decr(self._running_key)

    async def reset_running(self) -> None:
        await self._redis.delete(self._running_key)

    async def num_running(self) -> int:
        return int(await self._redis.get(self._running_key) or 0)

    async def paged_jobs(
        self,
        page_num: int = 1,
        page_size: int | None = None,
    ) -> list[PendingJob]:
        """
        Get one page of the queue's jobs.

        Args:
            page_num: Page number (1-indexed). Out of range pages give page 1.
            page_size: Jobs per page, defaulting to 20.

        Returns:
            The loaded jobs on the page.
        """
        page_size = coerce_page_size(page_size)
        start = (page_num - 1) * page_size
        if start < 0 or start >= await self.num_jobs():
            start = 0

        return await self.jobs(start, start + page_size - 1)

    async def jobs(self, start: int = 0, stop: int = -1) -> list[PendingJob]:
        """Get the loaded jobs between two list indexes (inclusive)."""
        job_ids = await self._redis.lrange(self._queue_key, start, stop)
        jobs = [PendingJob(self._context, job_id) for job_id in job_ids]

        await asyncio.gather(*(job.load() for job in jobs))

        return jobs

    async def num_jobs(self) -> int:
        return await self._redis.llen(self._queue_key)

    async def first_enqueued(self) -> datetime | None:
        """Time the job at the head of the queue was deferred."""
        jobs = await self.jobs(0, 0)
        return jobs[0].queue_time if jobs else None

    async def _remove_approval_key(self, job: PendingJob) -> None:
        from approval_gate.approve.approval_key_list import ApprovalKeyList

        descriptor = job.descriptor
        if descriptor is None or not descriptor.auto_delete_approval_key:
            return

        if await self.num_jobs() == 0:
            await ApprovalKeyList(self._context).remove_key(self.approval_key)

    async def _paused_job_skip(self) -> bool:
        if not await self.paused():
            return False

        await self._redis.incr(self._paused_count_key)
        self._metrics.record_paused_skip()

        logger.info(
            "Queue paused, release skipped",
            extra={"approval_key": self.approval_key},
        )
        return True

    async def _enqueue_job(self, job_id: str | None) -> bool:
        if not job_id:
            return False

        await PendingJob(self._context, job_id).enqueue()

        return True

    async def _delete_job(self, job_id: str | None) -> bool:
        if not job_id:
            return False

        job = PendingJob(self._context, job_id)
        if await job.delete():
            self._metrics.record_job_removed(job.job_type)

        return True

    @property
    def _queue_key(self) -> str:
        return self._context.job_queue_key(self.approval_key)

    @property
    def _pause_key(self) -> str:
        return self._context.paused_key(self.approval_key)

    @property
    def _paused_count_key(self) -> str:
        return self._context.paused_count_key(self.approval_key)

    @property
    def _running_key(self) -> str:
        return self._context.running_key(self.approval_key)
