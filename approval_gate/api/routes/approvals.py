"""
Approval administration routes.

Approval keys are free-form strings, so they are always passed as the
`approval_key` query parameter rather than as a path segment.
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from approval_gate.api.auth import AuthenticatedOperator, CurrentOperator
from approval_gate.api.dependencies import Context
from approval_gate.approve.approval_key_list import ApprovalKeyList
from approval_gate.approve.context import ApproveContext
from approval_gate.approve.pending_job import PendingJob
from approval_gate.approve.pending_job_queue import PendingJobQueue, coerce_page_size
from approval_gate.config import get_settings
from approval_gate.constants import API_V1_PREFIX, SortKey, SortOrder
from approval_gate.observability.metrics import get_metrics
from approval_gate.reconciler.cleaner import Cleaner
from approval_gate.types.api import (
    ActionResponse,
    ApprovalQueueListResponse,
    ApprovalQueueResponse,
    ApproveNumRequest,
    PendingJobListResponse,
    PendingJobResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/approvals", tags=["Approvals"])

ApprovalKey = Annotated[str, Query(min_length=1, description="Approval key of the queue")]

# Columns offered for sorting; `count` is accepted as an alias of num_jobs
SORT_COLUMNS = (SortKey.APPROVAL_KEY, SortKey.NUM_JOBS, SortKey.FIRST_ENQUEUED)


async def _queue_to_response(queue: PendingJobQueue) -> ApprovalQueueResponse:
    """Convert a PendingJobQueue to an ApprovalQueueResponse."""
    num_jobs, first_enqueued, paused, num_ignored, num_running = await asyncio.gather(
        queue.num_jobs(),
        queue.first_enqueued(),
        queue.paused(),
        queue.num_ignored(),
        queue.num_running(),
    )
    return ApprovalQueueResponse(
        approval_key=queue.approval_key,
        num_jobs=num_jobs,
        first_enqueued=first_enqueued,
        paused=paused,
        num_ignored=num_ignored,
        num_running=num_running,
    )


def _job_to_response(job: PendingJob) -> PendingJobResponse:
    """Convert a loaded PendingJob to a PendingJobResponse."""
    return PendingJobResponse(
        id=job.id,
        job_type=job.job_type,
        args=job.args,
        approve_options=job.approve_options.to_mapping(),
        approval_key=job.approval_key,
        queue_time=job.queue_time,
    )


def _page_size(page_size: int | None) -> int:
    return coerce_page_size(page_size or get_settings().default_page_size)


def _effective_page(page: int, page_size: int, total: int) -> int:
    """Page actually served; out of range pages fall back to the first."""
    start = (page - 1) * page_size
    return page if 0 <= start < total else 1


async def _fetch_job(context: ApproveContext, job_id: str) -> PendingJob:
    job = await PendingJob.fetch(context, job_id)
    if not job.job_type:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pending job {job_id} not found",
        )
    return job


def _log_action(action: str, operator: AuthenticatedOperator, **extra) -> None:
    logger.info(
        f"Admin action: {action}",
        extra={"action": action, "operator": operator.operator, **extra},
    )


@router.get(
    "/queues",
    response_model=ApprovalQueueListResponse,
    summary="List approval queues",
    description="List approval keys with their queue details, sorted and paginated.",
)
async def list_queues(
    context: Context,
    current_operator: CurrentOperator,
    sort: SortKey = SortKey.APPROVAL_KEY,
    order: SortOrder = SortOrder.ASC,
    page: int = 1,
    page_size: Annotated[int | None, Query(description="Queues per page")] = None,
) -> ApprovalQueueListResponse:
    """
    List approval queues.

    Each column's entry in `next_order` is the order to request when that
    column is chosen next, so a repeated choice toggles the direction.

    Args:
        context: Approve context.
        current_operator: Authenticated operator.
        sort: Column to sort by.
        order: Sort direction.
        page: Page number (1-indexed).
        page_size: Queues per page.

    Returns:
        ApprovalQueueListResponse with the queues on the page.
    """
    key_list = ApprovalKeyList(context)
    size = _page_size(page_size)
    current_sort = SortKey.NUM_JOBS if sort == SortKey.COUNT else sort

    queues = await key_list.queues(sort, order, page, size)
    total = await key_list.num_queues()

    return ApprovalQueueListResponse(
        queues=[await _queue_to_response(queue) for queue in queues],
        total=total,
        page=_effective_page(page, size, total),
        page_size=size,
        sort=sort,
        order=order,
        next_order={
            column.value: ApprovalKeyList.order_param(column, current_sort, order)
            for column in SORT_COLUMNS
        },
    )


@router.get(
    "/queues/jobs",
    response_model=PendingJobListResponse,
    summary="List pending jobs",
    description="List the pending jobs waiting on one approval key, oldest first.",
)
async def list_queue_jobs(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
    page: int = 1,
    page_size: Annotated[int | None, Query(description="Jobs per page")] = None,
) -> PendingJobListResponse:
    """List one page of the pending jobs for an approval key."""
    queue = PendingJobQueue(context, approval_key)
    size = _page_size(page_size)

    jobs = await queue.paged_jobs(page, size)
    total = await queue.num_jobs()

    return PendingJobListResponse(
        approval_key=approval_key,
        jobs=[_job_to_response(job) for job in jobs],
        total=total,
        page=_effective_page(page, size, total),
        page_size=size,
    )


@router.get(
    "/jobs/{job_id}",
    response_model=PendingJobResponse,
    summary="Get pending job details",
    description="Get the stored details of a single pending job.",
    responses={404: {"description": "Pending job not found"}},
)
async def get_job(
    job_id: str,
    context: Context,
    current_operator: CurrentOperator,
) -> PendingJobResponse:
    """
    Get a pending job by id.

    Raises:
        HTTPException: If the job does not exist.
    """
    return _job_to_response(await _fetch_job(context, job_id))


@router.delete(
    "/jobs/{job_id}",
    response_model=ActionResponse,
    summary="Delete a pending job",
    description="Delete a single pending job without running it.",
    responses={404: {"description": "Pending job not found"}},
)
async def delete_job(
    job_id: str,
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """
    Delete a pending job by id.

    Raises:
        HTTPException: If the job does not exist.
    """
    job = await _fetch_job(context, job_id)

    deleted = await job.delete()
    if deleted:
        get_metrics().record_job_removed(job.job_type)

    _log_action("delete_job", current_operator, job_id=job_id)
    return ActionResponse(
        action="delete_job",
        approval_key=job.approval_key,
        count=int(deleted),
        message="Pending job deleted",
    )


@router.post(
    "/jobs/{job_id}/enqueue",
    response_model=ActionResponse,
    summary="Release a pending job",
    description="Submit a single pending job to the broker, whatever its place in the queue.",
    responses={404: {"description": "Pending job not found"}},
)
async def enqueue_job(
    job_id: str,
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """
    Release a pending job by id.

    When two operators release the same job, only one submits it.

    Raises:
        HTTPException: If the job does not exist.
    """
    job = await _fetch_job(context, job_id)

    released = await job.queue.approve_job(job)

    _log_action("enqueue_job", current_operator, job_id=job_id, released=released)
    return ActionResponse(
        action="enqueue_job",
        approval_key=job.approval_key,
        count=int(released),
        message="Pending job released" if released else "Pending job was already released",
    )


@router.post(
    "/queues/approve_all",
    response_model=ActionResponse,
    summary="Approve all jobs for a key",
)
async def approve_queue(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Release every job waiting on an approval key."""
    count = await PendingJobQueue(context, approval_key).approve_all()

    _log_action("approve_all", current_operator, approval_key=approval_key, count=count)
    return ActionResponse(action="approve_all", approval_key=approval_key, count=count)


@router.post(
    "/queues/approve_one",
    response_model=ActionResponse,
    summary="Approve the next job for a key",
)
async def approve_one(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Release the oldest job waiting on an approval key."""
    released = await PendingJobQueue(context, approval_key).approve_one()

    _log_action("approve_one", current_operator, approval_key=approval_key)
    return ActionResponse(
        action="approve_one",
        approval_key=approval_key,
        count=int(released),
    )


@router.post(
    "/queues/approve_num",
    response_model=ActionResponse,
    summary="Approve a number of jobs for a key",
)
async def approve_num(
    request: ApproveNumRequest,
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Release up to `num` of the oldest jobs waiting on an approval key."""
    count = await PendingJobQueue(context, approval_key).approve_num(request.num)

    _log_action("approve_num", current_operator, approval_key=approval_key, count=count)
    return ActionResponse(action="approve_num", approval_key=approval_key, count=count)


@router.post(
    "/queues/remove_all",
    response_model=ActionResponse,
    summary="Remove all jobs for a key",
)
async def remove_queue_jobs(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Delete every job waiting on an approval key without running them."""
    count = await PendingJobQueue(context, approval_key).remove_all()

    _log_action("remove_all", current_operator, approval_key=approval_key, count=count)
    return ActionResponse(action="remove_all", approval_key=approval_key, count=count)


@router.post(
    "/queues/remove_one",
    response_model=ActionResponse,
    summary="Remove the next job for a key",
)
async def remove_one(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Delete the oldest job waiting on an approval key without running it."""
    removed = await PendingJobQueue(context, approval_key).remove_one()

    _log_action("remove_one", current_operator, approval_key=approval_key)
    return ActionResponse(
        action="remove_one",
        approval_key=approval_key,
        count=int(removed),
    )


@router.delete(
    "/queues",
    response_model=ActionResponse,
    summary="Delete a queue",
    description="Delete every job waiting on an approval key and unregister the key.",
)
async def delete_queue(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Delete an approval key's queue and its jobs."""
    count = await PendingJobQueue(context, approval_key).delete()
    await ApprovalKeyList(context).remove_key(approval_key)

    _log_action("delete_queue", current_operator, approval_key=approval_key, count=count)
    return ActionResponse(action="delete_queue", approval_key=approval_key, count=count)


@router.post(
    "/queues/pause",
    response_model=ActionResponse,
    summary="Pause a queue",
    description="Stop releasing jobs for an approval key. New jobs are still deferred into it.",
)
async def pause_queue(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Pause an approval key's queue."""
    await PendingJobQueue(context, approval_key).pause()

    _log_action("pause", current_operator, approval_key=approval_key)
    return ActionResponse(action="pause", approval_key=approval_key)


@router.post(
    "/queues/resume",
    response_model=ActionResponse,
    summary="Resume a queue",
)
async def resume_queue(
    context: Context,
    current_operator: CurrentOperator,
    approval_key: ApprovalKey,
) -> ActionResponse:
    """Resume releasing jobs for an approval key."""
    await PendingJobQueue(context, approval_key).resume()

    _log_action("resume", current_operator, approval_key=approval_key)
    return ActionResponse(action="resume", approval_key=approval_key)


@router.post(
    "/approve_all",
    response_model=ActionResponse,
    summary="Approve every queue",
    description="Release every pending job in every queue that is not paused.",
)
async def approve_all_queues(
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """Release all pending jobs."""
    count = await ApprovalKeyList(context).approve_all()

    _log_action("approve_all_queues", current_operator, count=count)
    return ActionResponse(action="approve_all_queues", count=count)


@router.post(
    "/delete_all",
    response_model=ActionResponse,
    summary="Delete every queue",
    description="Delete every pending job and unregister every approval key.",
)
async def delete_all_queues(
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """Delete all pending jobs and queues."""
    count = await ApprovalKeyList(context).delete_all()

    _log_action("delete_all_queues", current_operator, count=count)
    return ActionResponse(action="delete_all_queues", count=count)


@router.post(
    "/cleanup/jobs",
    response_model=ActionResponse,
    summary="Reconcile pending jobs",
    description="Put stored pending jobs missing from their queue back in.",
)
async def cleanup_jobs(
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """Run the pending job reconciliation pass."""
    count = await Cleaner(context).cleanup_jobs()

    _log_action("cleanup_jobs", current_operator, count=count)
    return ActionResponse(action="cleanup_jobs", count=count)


@router.post(
    "/cleanup/queues",
    response_model=ActionResponse,
    summary="Reconcile approval keys",
    description="Unregister approval keys whose queue is empty.",
)
async def cleanup_queues(
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """Run the approval key reconciliation pass."""
    count = await Cleaner(context).cleanup_queues()

    _log_action("cleanup_queues", current_operator, count=count)
    return ActionResponse(action="cleanup_queues", count=count)


@router.post(
    "/purge",
    response_model=ActionResponse,
    summary="Purge all approval state",
    description="Delete everything stored under the approval key prefix. Pending jobs are lost.",
)
async def purge(
    context: Context,
    current_operator: CurrentOperator,
) -> ActionResponse:
    """Purge all approval state."""
    count = await Cleaner(context).purge_all()

    _log_action("purge", current_operator, count=count)
    return ActionResponse(action="purge", count=count, message="All approval state purged")
