"""
Admission decisions for job submissions and direct executions.

A job is deferred when its trailing options carry an approval_key, or when
it asks for approval (explicitly with requires_approval, or implicitly by
belonging to a job type with a concurrency budget) and either its queue is
paused or the budget is spent.
"""

import logging
from typing import Any

from approval_gate.approve.approval_key_list import ApprovalKeyList
from approval_gate.approve.context import ApproveContext
from approval_gate.approve.pending_job import PendingJob
from approval_gate.approve.pending_job_queue import PendingJobQueue
from approval_gate.constants import SPAN_BEFORE_ENQUEUE, SPAN_BEFORE_PERFORM
from approval_gate.exceptions import JobNotApproved
from approval_gate.observability.metrics import get_metrics
from approval_gate.observability.tracing import get_tracer
from approval_gate.types.job import JobTypeDescriptor

logger = logging.getLogger(__name__)


class Gate:
    """
    Decides whether a job runs now or waits for approval.

    Also exposes release/removal shortcuts by approval key and by job type.
    """

    def __init__(self, context: ApproveContext):
        self._context = context
        self._key_list = ApprovalKeyList(context)
        self._metrics = get_metrics()

    async def before_enqueue(
        self,
        job_type: str,
        args: list[Any],
    ) -> tuple[bool, list[Any]]:
        """
        Check a submission, deferring it if it needs approval.

        Args:
            job_type: The job type being submitted.
            args: The job args, possibly compressed, possibly ending in options.

        Returns:
            Tuple of (admitted, args). When admitted, args are what should be
            submitted to the broker; when deferred, args is empty.

        Raises:
            UnknownJobTypeError: If the job type is not registered.
        """
        descriptor = self._context.job_types.get(job_type)

        with get_tracer().start_as_current_span(SPAN_BEFORE_ENQUEUE) as span:
            span.set_attribute("job_type", job_type)

            job = PendingJob(self._context, job_type=job_type, args=args)

            if await self._requires_approval(job, descriptor):
                await self._key_list.add_job(job)

                span.set_attribute("deferred", True)
                self._metrics.record_job_deferred(job_type)
                return False, []

            span.set_attribute("deferred", False)
            self._metrics.record_job_admitted(job_type)
            return True, job.submission_args(descriptor)

    async def enqueue(self, job_type: str, args: list[Any]) -> bool:
        """
        Submit a job to the broker unless it has to wait for approval.

        Returns:
            True if the job was submitted, False if it was deferred.
        """
        admitted, submit_args = await self.before_enqueue(job_type, args)

        if admitted:
            broker = self._context.broker
            await broker.submit(broker.queue_for(job_type), job_type, submit_args)

        return admitted

    async def before_perform(self, job_type: str, args: list[Any]) -> list[Any]:
        """
        Check a job that is about to run without having gone through the broker.

        Budget-governed job types are not re-checked here: their running
        slot was reserved when they were admitted or released.

        Args:
            job_type: The job type about to run.
            args: The job args as received.

        Returns:
            The args the job should run with.

        Raises:
            JobNotApproved: If the job still needs approval. It has been
                added to its pending queue.
        """
        descriptor = self._context.job_types.get(job_type)

        with get_tracer().start_as_current_span(SPAN_BEFORE_PERFORM) as span:
            span.set_attribute("job_type", job_type)

            job = PendingJob(self._context, job_type=job_type, args=args)

            if not descriptor.has_budget and await self._blocked_before_perform(
                job, descriptor
            ):
                await self._key_list.add_job(job)
                self._metrics.record_job_deferred(job_type)

                raise JobNotApproved(job_type, job.approval_key, job.id)

            return job.submission_args(descriptor)

    async def approve(self, approval_key: str) -> int:
        return await PendingJobQueue(self._context, approval_key).approve_all()

    async def approve_one(self, approval_key: str) -> bool:
        return await PendingJobQueue(self._context, approval_key).approve_one()

    async def approve_num(self, num_approve: int, approval_key: str) -> int:
        return await PendingJobQueue(self._context, approval_key).approve_num(num_approve)

    async def remove(self, approval_key: str) -> int:
        return await PendingJobQueue(self._context, approval_key).remove_all()

    async def remove_one(self, approval_key: str) -> bool:
        return await PendingJobQueue(self._context, approval_key).remove_one()

    async def approve_job_type(self, job_type: str) -> int:
        return await self.approve(self._default_key(job_type))

    async def approve_one_job_type(self, job_type: str) -> bool:
        return await self.approve_one(self._default_key(job_type))

    async def approve_num_job_type(self, num_approve: int, job_type: str) -> int:
        return await self.approve_num(num_approve, self._default_key(job_type))

    async def remove_job_type(self, job_type: str) -> int:
        return await self.remove(self._default_key(job_type))

    async def remove_one_job_type(self, job_type: str) -> bool:
        return await self.remove_one(self._default_key(job_type))

    def _default_key(self, job_type: str) -> str:
        return self._context.job_types.get(job_type).approval_queue_name

    async def _requires_approval(
        self,
        job: PendingJob,
        descriptor: JobTypeDescriptor,
    ) -> bool:
        if job.approval_key is not None:
            return True

        if not (job.approve_options.requires_approval or descriptor.has_budget):
            return False

        job.approval_key = descriptor.approval_queue_name
        queue = job.queue

        if await queue.paused():
            return True

        return await self._over_budget(queue, descriptor)

    async def _blocked_before_perform(
        self,
        job: PendingJob,
        descriptor: JobTypeDescriptor,
    ) -> bool:
        if job.approval_key is not None:
            return True

        if not job.approve_options.requires_approval:
            return False

        job.approval_key = descriptor.approval_queue_name
        return await job.queue.paused()

    @staticmethod
    async def _over_budget(
        queue: PendingJobQueue,
        descriptor: JobTypeDescriptor,
    ) -> bool:
        """
        Reserve a running slot, giving it back if the budget is exceeded.

        Racing callers may briefly over-admit by at most their number.
        """
        if not descriptor.has_budget:
            return False

        running = await queue.increment_running()
        if running <= descriptor.max_active_jobs:
            return False

        await queue.decrement_running()

        logger.info(
            "Concurrency budget reached, deferring job",
            extra={
                "approval_key": queue.approval_key,
                "max_active_jobs": descriptor.max_active_jobs,
            },
        )
        return True
