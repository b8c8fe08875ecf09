"""
A single job invocation deferred until it is approved.

Each pending job is stored as a Redis hash keyed by its id:
    class_name       - the job type to submit when released
    args             - JSON encoded job args (compressed if the job type says so)
    approve_options  - JSON encoded approval options
    queue_time       - ISO-8601 UTC time the job was deferred

The approval options are split off the trailing mapping of the job args:
    approval_key       - the key used to release the job
    approval_queue     - the queue the job is submitted to when released,
                         defaulting to the job type's queue
    approval_at        - when set, the released job is scheduled for this time
                         instead of being submitted immediately
    requires_approval  - defer without an explicit key, subject to the job
                         type's concurrency budget and the queue's pause state
"""

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from functools import total_ordering
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from approval_gate.approve.context import ApproveContext
from approval_gate.constants import APPROVAL_OPTION_KEYS, SPAN_RELEASE_JOB
from approval_gate.observability.metrics import get_metrics
from approval_gate.observability.tracing import get_tracer
from approval_gate.types.job import ApproveOptions, JobTypeDescriptor

if TYPE_CHECKING:
    from approval_gate.approve.pending_job_queue import PendingJobQueue

logger = logging.getLogger(__name__)


def split_approve_options(args: list[Any]) -> tuple[list[Any], ApproveOptions]:
    """
    Split the approval options off the trailing mapping of a job's args.

    Any non-approval keys in the mapping stay attached to the args.

    Args:
        args: The logical (uncompressed) job args.

    Returns:
        Tuple of (args without approval options, approval options).
    """
    args = list(args)
    if not args or not isinstance(args[-1], Mapping):
        return args, ApproveOptions()

    trailing = dict(args.pop())
    options = ApproveOptions.from_mapping(trailing)
    remaining = {
        key: value for key, value in trailing.items() if key not in APPROVAL_OPTION_KEYS
    }
    if remaining:
        args.append(remaining)

    return args, options


def with_approval_key(args: list[Any], approval_key: str) -> list[Any]:
    """Attach an approval key to the trailing options of a job's args."""
    args = list(args)
    if args and isinstance(args[-1], Mapping):
        args[-1] = {**args[-1], "approval_key": approval_key}
    else:
        args.append({"approval_key": approval_key})
    return args


def logical_args(descriptor: JobTypeDescriptor | None, args: list[Any]) -> list[Any]:
    """Expand a compressed envelope into the job's logical args."""
    args = list(args)
    if descriptor is not None and descriptor.codec is not None:
        if descriptor.codec.is_compressed(args):
            return descriptor.codec.decompress(args)
    return args


@total_ordering
class PendingJob:
    """
    A job awaiting approval.

    Jobs built from an id alone are hydrated from Redis by `load()`; until
    then their attributes report empty defaults. Loading is memoized.
    """

    def __init__(
        self,
        context: ApproveContext,
        job_id: str | None = None,
        *,
        job_type: str | None = None,
        args: list[Any] | None = None,
    ):
        self._context = context
        self.id = job_id or uuid4().hex
        self._job_type = job_type
        self._args: list[Any] | None = None
        self._approve_options: ApproveOptions | None = None
        self._queue_time: datetime | None = None
        self._stored: dict[str, str] | None = None

        if args is not None:
            self.args = args

    @classmethod
    async def fetch(cls, context: ApproveContext, job_id: str) -> "PendingJob":
        """Build a pending job from its id and load it from Redis."""
        return await cls(context, job_id).load()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PendingJob):
            return NotImplemented
        return self.id == other.id

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PendingJob):
            return NotImplemented
        return self.id.encode("utf-8") < other.id.encode("utf-8")

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"PendingJob(id={self.id!r}, job_type={self.job_type!r})"

    @property
    def job_type(self) -> str | None:
        return self._job_type or self._stored_values.get("class_name") or None

    @property
    def descriptor(self) -> JobTypeDescriptor | None:
        return self._context.job_types.find(self.job_type)

    @property
    def args(self) -> list[Any]:
        if self._args is not None:
            return self._args

        stored = self._decode(self._stored_values.get("args"), default=[])
        if not isinstance(stored, list):
            stored = [stored]
        args = logical_args(self.descriptor, stored)
        if self._stored is not None:
            self._args = args
        return args

    @args.setter
    def args(self, value: list[Any] | None) -> None:
        if value is None:
            self._args = []
            self._approve_options = ApproveOptions()
            return

        self._args, self._approve_options = split_approve_options(
            logical_args(self.descriptor, value)
        )

    @property
    def approve_options(self) -> ApproveOptions:
        if self._approve_options is not None:
            return self._approve_options

        stored = self._decode(self._stored_values.get("approve_options"), default={})
        # Older records hold the options wrapped in a one-element list
        if isinstance(stored, list):
            stored = stored[0] if stored else {}
        options = ApproveOptions.from_mapping(stored)
        if self._stored is not None:
            self._approve_options = options
        return options

    @property
    def approval_key(self) -> str | None:
        return self.approve_options.approval_key

    @approval_key.setter
    def approval_key(self, value: str) -> None:
        self._approve_options = self.approve_options.model_copy(
            update={"approval_key": value}
        )

    @property
    def approval_queue(self) -> str | None:
        return self.approve_options.approval_queue

    @property
    def approval_at(self) -> datetime | None:
        return self.approve_options.approval_at

    @property
    def requires_approval(self) -> bool:
        return self.approval_key is not None or bool(self.approve_options.requires_approval)

    @property
    def queue_time(self) -> datetime | None:
        if self._queue_time is None:
            raw = self._stored_values.get("queue_time")
            if raw:
                try:
                    self._queue_time = datetime.fromisoformat(raw)
                except ValueError:
                    logger.warning(
                        "Ignoring malformed queue time",
                        extra={"job_id": self.id, "queue_time": raw},
                    )
        return self._queue_time

    @property
    def queue(self) -> "PendingJobQueue":
        """The pending job queue for this job's approval key."""
        from approval_gate.approve.pending_job_queue import PendingJobQueue

        return PendingJobQueue(self._context, self.approval_key)

    async def load(self) -> "PendingJob":
        """
        Load the stored values for this job from Redis.

        Unknown ids load as an empty record.

        Returns:
            The job itself, for chaining.
        """
        if self._stored is None:
            self._stored = await self._context.redis.hgetall(self._job_key) or {}
        return self

    def submission_args(self, descriptor: JobTypeDescriptor) -> list[Any]:
        """
        Build the args handed to the broker when this job runs.

        Budget-governed job types keep the approval key in the trailing
        options so the completion hook can find the queue to release from.

        Args:
            descriptor: The job type's descriptor.

        Returns:
            The args in the job type's wire form.
        """
        args = list(self.args)
        if descriptor.has_budget:
            args = with_approval_key(
                args, self.approval_key or descriptor.approval_queue_name
            )
        if descriptor.codec is not None:
            args = descriptor.codec.compress(args)
        return args

    async def save(self) -> None:
        """Persist the job's type, args and options, stamping the queue time."""
        now = datetime.now(timezone.utc)
        args = self.args
        descriptor = self.descriptor
        if descriptor is not None and descriptor.codec is not None:
            args = descriptor.codec.compress(args)

        await self._context.redis.hset(
            self._job_key,
            mapping={
                "class_name": self.job_type or "",
                "args": json.dumps(args),
                "approve_options": json.dumps(self.approve_options.to_mapping()),
                "queue_time": now.isoformat(),
            },
        )
        self._queue_time = now

    async def delete(self) -> bool:
        """
        Delete the stored job and unlink it from its queue.

        Deleting a job that does not exist is a no-op.

        Returns:
            True if a stored job was deleted.
        """
        # Load first so the job stays usable after the hash is gone
        await self.load()

        if not self.job_type:
            return False

        await self._context.redis.delete(self._job_key)

        if self.approval_key is not None:
            await self.queue.remove_job(self)

        return True

    async def enqueue(self) -> Any:
        """
        Submit the job to the broker, then delete it.

        Jobs with an approval_at time are scheduled rather than submitted.

        Returns:
            The broker's return value, or None if the job no longer exists.
        """
        await self.load()

        if not self.job_type:
            logger.warning(
                "Pending job not found, nothing to release",
                extra={"job_id": self.id},
            )
            return None

        descriptor = self._context.job_types.get(self.job_type)
        broker = self._context.broker
        queue_name = self.approval_queue or broker.queue_for(self.job_type)
        args = self.submission_args(descriptor)

        with get_tracer().start_as_current_span(SPAN_RELEASE_JOB) as span:
            span.set_attribute("job_id", self.id)
            span.set_attribute("job_type", self.job_type)
            span.set_attribute("approval_key", self.approval_key or "")

            if descriptor.has_budget and self.approval_key is not None:
                await self.queue.increment_running()

            if self.approval_at is not None:
                result = await broker.submit_at(
                    queue_name, self.approval_at, self.job_type, args
                )
            else:
                result = await broker.submit(queue_name, self.job_type, args)

        await self.delete()

        get_metrics().record_job_released(self.job_type)
        logger.info(
            "Released pending job",
            extra={
                "job_id": self.id,
                "job_type": self.job_type,
                "approval_key": self.approval_key,
                "queue": queue_name,
            },
        )

        return result

    @property
    def _job_key(self) -> str:
        return self._context.pending_job_key(self.id)

    @property
    def _stored_values(self) -> dict[str, str]:
        return self._stored or {}

    def _decode(self, raw: str | None, default: Any) -> Any:
        if not raw:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(
                "Ignoring malformed stored value",
                extra={"job_id": self.id},
            )
            return default
