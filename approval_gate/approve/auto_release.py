"""
Completion hook for job types with a concurrency budget.

When a budget-governed job finishes, successfully or not, it gives back its
running slot and releases the next job waiting on the same approval key.
"""

import functools
import logging
from typing import Any, Awaitable, Callable

from approval_gate.approve.context import ApproveContext
from approval_gate.approve.pending_job import logical_args, split_approve_options
from approval_gate.approve.pending_job_queue import PendingJobQueue

logger = logging.getLogger(__name__)

# Invokes a job with its type and wire args
JobInvoker = Callable[[str, list[Any]], Awaitable[Any]]


def release_key(context: ApproveContext, job_type: str, args: list[Any]) -> str:
    """
    Find the approval key a budget-governed job was admitted under.

    Falls back to the job type's default queue name when the args carry
    no key, such as for a job that never went through the gate.
    """
    descriptor = context.job_types.get(job_type)
    _, options = split_approve_options(logical_args(descriptor, args))
    return options.approval_key or descriptor.approval_queue_name


def auto_release(context: ApproveContext) -> Callable[[JobInvoker], JobInvoker]:
    """
    Decorator that wraps a job invoker with auto-release on completion.

    Args:
        context: The approve context the queues live in.

    Returns:
        Decorator function.

    Example:
        invoke = auto_release(context)(invoke)
    """

    def decorator(invoke: JobInvoker) -> JobInvoker:
        @functools.wraps(invoke)
        async def wrapper(job_type: str, args: list[Any]) -> Any:
            queue = PendingJobQueue(context, release_key(context, job_type, args))
            try:
                return await invoke(job_type, args)
            finally:
                await queue.decrement_running()
                released = await queue.approve_one()

                logger.debug(
                    "Auto-release after job completion",
                    extra={
                        "job_type": job_type,
                        "approval_key": queue.approval_key,
                        "released": released,
                    },
                )

        return wrapper

    return decorator
