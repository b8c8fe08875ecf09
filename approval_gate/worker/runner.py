"""
Job runner that dispatches jobs to registered handlers through the gate.

Handlers are plain async callables receiving the job's logical args, with
the approval options already stripped:

    runner = JobRunner(context)

    @runner.register("send_report")
    async def send_report(account_id, options):
        ...

Job types with a concurrency budget are wrapped in auto-release when they
are registered, so every completion frees a slot and releases the next job
waiting on the same approval key.
"""

import logging
from typing import Any, Awaitable, Callable

from approval_gate.approve.auto_release import JobInvoker, auto_release
from approval_gate.approve.context import ApproveContext
from approval_gate.approve.gate import Gate
from approval_gate.approve.pending_job import logical_args, split_approve_options
from approval_gate.exceptions import JobNotApproved, UnknownJobTypeError
from approval_gate.observability.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[..., Awaitable[Any]]


class JobRunner:
    """Registry of job handlers, run behind the gate's pre-execution check."""

    def __init__(self, context: ApproveContext, gate: Gate | None = None):
        self._context = context
        self._gate = gate or Gate(context)
        self._handlers: dict[str, JobHandler] = {}
        self._invokers: dict[str, JobInvoker] = {}

    def register(self, job_type: str) -> Callable[[JobHandler], JobHandler]:
        """
        Decorator to register a job handler.

        The job type must already be in the context's job type registry.

        Args:
            job_type: The job type this handler processes.

        Returns:
            Decorator function. The handler itself is returned unchanged.

        Raises:
            UnknownJobTypeError: If the job type is not registered.
        """
        descriptor = self._context.job_types.get(job_type)

        def decorator(handler: JobHandler) -> JobHandler:
            async def invoke(job_type: str, args: list[Any]) -> Any:
                job_args, _ = split_approve_options(logical_args(descriptor, args))
                return await handler(*job_args)

            if descriptor.has_budget:
                invoke = auto_release(self._context)(invoke)

            self._handlers[job_type] = handler
            self._invokers[job_type] = invoke
            logger.info(f"Registered handler for job type: {job_type}")
            return handler

        return decorator

    def get_handler(self, job_type: str) -> JobHandler | None:
        """
        Get the handler for a job type.

        Args:
            job_type: The job type.

        Returns:
            The handler function or None if not found.
        """
        return self._handlers.get(job_type)

    def list_handlers(self) -> list[str]:
        """List all job types with a registered handler."""
        return list(self._handlers.keys())

    async def run(self, job_type: str, args: list[Any]) -> Any:
        """
        Run a job, unless it still needs approval.

        A job that needs approval is put in its pending queue by the gate
        and skipped here.

        Args:
            job_type: The job type to run.
            args: The job args as received from the broker or caller.

        Returns:
            The handler's result, or None if the job was deferred.

        Raises:
            UnknownJobTypeError: If the job type or its handler is unknown.
        """
        invoke = self._invokers.get(job_type)
        if invoke is None:
            raise UnknownJobTypeError(job_type)

        bind_context(job_type=job_type)
        try:
            try:
                args = await self._gate.before_perform(job_type, args)
            except JobNotApproved as e:
                logger.info(
                    "Job not approved yet, skipping run",
                    extra={"job_id": e.job_id, "approval_key": e.approval_key},
                )
                return None

            try:
                return await invoke(job_type, args)
            except Exception:
                logger.exception("Job handler raised exception")
                raise
        finally:
            clear_context()
