"""
The set of all approval keys with pending job queues.
"""

import logging

from approval_gate.approve.context import ApproveContext
from approval_gate.approve.pending_job import PendingJob
from approval_gate.approve.pending_job_queue import PendingJobQueue, coerce_page_size
from approval_gate.constants import DEFAULT_PAGE_SIZE, SortKey, SortOrder

logger = logging.getLogger(__name__)


class ApprovalKeyList:
    """
    Registry of approval keys, stored as a Redis set.

    Membership is kept in step with the queues on a best-effort basis;
    the reconciler repairs any drift.
    """

    def __init__(self, context: ApproveContext):
        self._context = context
        self._redis = context.redis

    @staticmethod
    def order_param(
        sort_option: str,
        current_sort: str | None,
        current_order: str | None,
    ) -> SortOrder:
        """
        Order to use when a column header is chosen.

        Choosing the current column toggles its order; any other column
        starts ascending.
        """
        current_order = current_order or SortOrder.ASC

        if sort_option == current_sort:
            return SortOrder.DESC if current_order == SortOrder.ASC else SortOrder.ASC

        return SortOrder.ASC

    async def add_key(self, approval_key: str) -> bool:
        return bool(await self._redis.sadd(self._list_key, approval_key))

    async def remove_key(self, approval_key: str) -> bool:
        return bool(await self._redis.srem(self._list_key, approval_key))

    async def add_job(self, job: PendingJob) -> None:
        """Register the job's approval key and add the job to its queue."""
        await self.add_key(job.approval_key)

        await PendingJobQueue(self._context, job.approval_key).add_job(job)

        logger.info(
            "Added pending job",
            extra={
                "job_id": job.id,
                "job_type": job.job_type,
                "approval_key": job.approval_key,
            },
        )

    async def delete_all(self) -> int:
        """
        Delete every queue and its jobs, then clear the key list.

        Returns:
            Number of jobs deleted.
        """
        deleted = 0
        for queue in await self.job_queues():
            deleted += await queue.delete()
            await self.remove_key(queue.approval_key)

        await self._redis.delete(self._list_key)

        logger.info("Deleted all approval queues", extra={"jobs_deleted": deleted})
        return deleted

    async def approve_all(self) -> int:
        """
        Release every job in every queue that is not paused.

        Returns:
            Number of jobs released.
        """
        released = 0
        for queue in await self.job_queues():
            released += await queue.approve_all()
        return released

    async def queues(
        self,
        sort_key: SortKey | str = SortKey.APPROVAL_KEY,
        sort_order: SortOrder | str = SortOrder.ASC,
        page_num: int = 1,
        page_size: int | None = DEFAULT_PAGE_SIZE,
    ) -> list[PendingJobQueue]:
        """
        Get one page of queues, sorted by a column.

        Args:
            sort_key: approval_key, num_jobs (or count), or first_enqueued.
            sort_order: asc or desc.
            page_num: Page number (1-indexed). Out of range pages give page 1.
            page_size: Queues per page, defaulting to 20.

        Returns:
            The queues on the requested page.
        """
        page_size = coerce_page_size(page_size)

        job_queues = await self._sorted_job_queues(
            SortKey(sort_key),
            reverse=SortOrder(sort_order) == SortOrder.DESC,
        )

        page_start = (page_num - 1) * page_size
        if page_start < 0 or page_start >= len(job_queues):
            page_start = 0

        return job_queues[page_start : page_start + page_size]

    async def job_queues(self) -> list[PendingJobQueue]:
        return [
            PendingJobQueue(self._context, approval_key)
            for approval_key in await self.queue_keys()
        ]

    async def queue_keys(self) -> list[str]:
        return sorted(await self._redis.smembers(self._list_key))

    async def num_queues(self) -> int:
        return await self._redis.scard(self._list_key)

    async def _sorted_job_queues(
        self,
        sort_key: SortKey,
        reverse: bool,
    ) -> list[PendingJobQueue]:
        job_queues = await self.job_queues()
        if sort_key == SortKey.APPROVAL_KEY:
            return sorted(job_queues, key=lambda queue: queue.approval_key, reverse=reverse)

        values = {
            queue.approval_key: await self._sort_value(queue, sort_key)
            for queue in job_queues
        }
        # Ties keep approval key order whichever way the sort runs
        return sorted(
            job_queues,
            key=lambda queue: values[queue.approval_key],
            reverse=reverse,
        )

    @staticmethod
    async def _sort_value(queue: PendingJobQueue, sort_key: SortKey) -> int | str:
        if sort_key in (SortKey.NUM_JOBS, SortKey.COUNT):
            return await queue.num_jobs()

        first_enqueued = await queue.first_enqueued()
        return first_enqueued.isoformat() if first_enqueued else ""

    @property
    def _list_key(self) -> str:
        return self._context.approval_key_list_key
