"""
Unit tests for the gate's admission decisions.
"""

import pytest

from approval_gate.approve import (
    ApprovalKeyList,
    ApproveContext,
    Gate,
    PendingJobQueue,
    ZlibArgsCodec,
)
from approval_gate.exceptions import JobNotApproved, UnknownJobTypeError
from tests.constants import BASIC_JOB, COMPRESSED_JOB, MAX_ACTIVE_JOB, MAX_ACTIVE_JOBS


class TestBeforeEnqueue:
    """Tests for the pre-submission check."""

    @pytest.mark.asyncio
    async def test_job_without_options_is_admitted(self, gate: Gate):
        admitted, args = await gate.before_enqueue(BASIC_JOB, ["a", {"color": "red"}])

        assert admitted is True
        assert args == ["a", {"color": "red"}]

    @pytest.mark.asyncio
    async def test_explicit_key_always_defers(
        self,
        context: ApproveContext,
        gate: Gate,
        submitted,
    ):
        admitted, args = await gate.before_enqueue(
            BASIC_JOB, ["a", 1, {"approval_key": "K", "color": "red"}]
        )

        assert admitted is False
        assert args == []
        assert await ApprovalKeyList(context).queue_keys() == ["K"]

        queue = PendingJobQueue(context, "K")
        jobs = await queue.jobs()
        assert len(jobs) == 1
        assert jobs[0].args == ["a", 1, {"color": "red"}]
        assert await submitted("basic") == []

    @pytest.mark.asyncio
    async def test_explicit_key_defers_despite_malformed_sibling_option(
        self,
        context: ApproveContext,
        gate: Gate,
        submitted,
    ):
        admitted, args = await gate.before_enqueue(
            BASIC_JOB, [1, {"approval_key": "K", "approval_at": "next tuesday"}]
        )

        assert admitted is False
        assert args == []
        jobs = await PendingJobQueue(context, "K").jobs()
        assert [job.args for job in jobs] == [[1]]
        assert jobs[0].approval_at is None
        assert await submitted("basic") == []

    @pytest.mark.asyncio
    async def test_deferred_job_released_with_original_args(
        self,
        context: ApproveContext,
        gate: Gate,
        submitted,
    ):
        await gate.before_enqueue(BASIC_JOB, ["a", 1, {"approval_key": "K", "color": "red"}])

        assert await gate.approve("K") == 1

        payloads = await submitted("basic")
        assert [payload["args"] for payload in payloads] == [["a", 1, {"color": "red"}]]

    @pytest.mark.asyncio
    async def test_requires_approval_admitted_when_not_paused(
        self,
        context: ApproveContext,
        gate: Gate,
    ):
        admitted, args = await gate.before_enqueue(
            BASIC_JOB, ["a", {"requires_approval": True}]
        )

        assert admitted is True
        assert args == ["a"]
        assert await ApprovalKeyList(context).num_queues() == 0

    @pytest.mark.asyncio
    async def test_requires_approval_deferred_when_paused(
        self,
        context: ApproveContext,
        gate: Gate,
    ):
        await PendingJobQueue(context, "basic").pause()

        admitted, _ = await gate.before_enqueue(BASIC_JOB, ["a", {"requires_approval": True}])

        assert admitted is False
        assert await PendingJobQueue(context, "basic").num_jobs() == 1

    @pytest.mark.asyncio
    async def test_unknown_job_type(self, gate: Gate):
        with pytest.raises(UnknownJobTypeError):
            await gate.before_enqueue("nope", [])

    @pytest.mark.asyncio
    async def test_enqueue_submits_admitted_jobs(self, gate: Gate, submitted):
        assert await gate.enqueue(BASIC_JOB, ["a"]) is True
        assert await gate.enqueue(BASIC_JOB, ["b", {"approval_key": "K"}]) is False

        assert [payload["args"] for payload in await submitted("basic")] == [["a"]]

    @pytest.mark.asyncio
    async def test_compressed_args_are_recompressed(self, gate: Gate):
        codec = ZlibArgsCodec()

        admitted, args = await gate.before_enqueue(
            COMPRESSED_JOB, codec.compress(["big", {"requires_approval": True}])
        )

        assert admitted is True
        assert codec.is_compressed(args)
        assert codec.decompress(args) == ["big"]


class TestConcurrencyBudget:
    """Tests for job types limited to a number of running jobs."""

    @pytest.mark.asyncio
    async def test_jobs_over_budget_are_deferred(self, context: ApproveContext, gate: Gate):
        results = [
            await gate.enqueue(MAX_ACTIVE_JOB, [index]) for index in range(MAX_ACTIVE_JOBS + 1)
        ]

        assert results == [True, True, False]

        queue = PendingJobQueue(context, "max_active")
        assert await queue.num_running() == MAX_ACTIVE_JOBS
        assert await queue.num_jobs() == 1

    @pytest.mark.asyncio
    async def test_admitted_args_carry_approval_key(self, gate: Gate, submitted):
        await gate.enqueue(MAX_ACTIVE_JOB, ["x"])

        payloads = await submitted("limited")
        assert payloads[0]["args"] == ["x", {"approval_key": "max_active"}]

    @pytest.mark.asyncio
    async def test_paused_budget_queue_defers_without_reserving(
        self,
        context: ApproveContext,
        gate: Gate,
    ):
        queue = PendingJobQueue(context, "max_active")
        await queue.pause()

        assert await gate.enqueue(MAX_ACTIVE_JOB, ["x"]) is False

        assert await queue.num_running() == 0
        assert await queue.num_jobs() == 1

    @pytest.mark.asyncio
    async def test_explicit_key_defers_budget_job(self, context: ApproveContext, gate: Gate):
        assert await gate.enqueue(MAX_ACTIVE_JOB, ["x", {"approval_key": "K"}]) is False

        assert await PendingJobQueue(context, "K").num_jobs() == 1
        assert await PendingJobQueue(context, "max_active").num_running() == 0


class TestBeforePerform:
    """Tests for the pre-execution check."""

    @pytest.mark.asyncio
    async def test_job_without_options_runs(self, gate: Gate):
        assert await gate.before_perform(BASIC_JOB, ["a", {"color": "red"}]) == [
            "a",
            {"color": "red"},
        ]

    @pytest.mark.asyncio
    async def test_explicit_key_blocks_and_defers(self, context: ApproveContext, gate: Gate):
        with pytest.raises(JobNotApproved) as exc_info:
            await gate.before_perform(BASIC_JOB, ["a", {"approval_key": "K"}])

        assert exc_info.value.approval_key == "K"
        assert str(exc_info.value) == "The job has not been approved yet."

        jobs = await PendingJobQueue(context, "K").jobs()
        assert [job.id for job in jobs] == [exc_info.value.job_id]
        assert jobs[0].args == ["a"]

    @pytest.mark.asyncio
    async def test_requires_approval_blocks_when_paused(
        self,
        context: ApproveContext,
        gate: Gate,
    ):
        assert await gate.before_perform(BASIC_JOB, ["a", {"requires_approval": True}]) == ["a"]

        await PendingJobQueue(context, "basic").pause()

        with pytest.raises(JobNotApproved):
            await gate.before_perform(BASIC_JOB, ["a", {"requires_approval": True}])

    @pytest.mark.asyncio
    async def test_budget_job_is_not_rechecked(self, context: ApproveContext, gate: Gate):
        queue = PendingJobQueue(context, "max_active")
        for _ in range(MAX_ACTIVE_JOBS):
            await queue.increment_running()

        args = await gate.before_perform(MAX_ACTIVE_JOB, ["x", {"approval_key": "max_active"}])

        assert args == ["x", {"approval_key": "max_active"}]
        assert await queue.num_running() == MAX_ACTIVE_JOBS
        assert await queue.num_jobs() == 0


class TestReleaseShortcuts:
    """Tests for releasing and removing jobs through the gate."""

    @pytest.mark.asyncio
    async def test_release_by_key(self, context: ApproveContext, gate: Gate, submitted):
        for name in ("a", "b", "c", "d"):
            await gate.enqueue(BASIC_JOB, [name, {"approval_key": "K"}])

        assert await gate.approve_one("K") is True
        assert await gate.approve_num(2, "K") == 2
        assert await gate.remove_one("K") is True
        assert await gate.remove("K") == 0

        assert [payload["args"] for payload in await submitted("basic")] == [["a"], ["b"], ["c"]]

    @pytest.mark.asyncio
    async def test_release_by_job_type(self, context: ApproveContext, gate: Gate, submitted):
        await PendingJobQueue(context, "max_active").pause()
        for name in ("a", "b", "c"):
            await gate.enqueue(MAX_ACTIVE_JOB, [name])
        await PendingJobQueue(context, "max_active").resume()

        assert await gate.approve_one_job_type(MAX_ACTIVE_JOB) is True
        assert await gate.approve_num_job_type(1, MAX_ACTIVE_JOB) == 1
        assert await gate.remove_one_job_type(MAX_ACTIVE_JOB) is True
        assert await gate.approve_job_type(MAX_ACTIVE_JOB) == 0
        assert await gate.remove_job_type(MAX_ACTIVE_JOB) == 0

        assert len(await submitted("limited")) == 2
