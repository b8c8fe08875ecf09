"""
Unit tests for pending jobs.
"""

import json
from datetime import datetime, timezone

import pytest

from approval_gate.approve import ApproveContext, PendingJob, PendingJobQueue, ZlibArgsCodec
from approval_gate.approve.pending_job import split_approve_options, with_approval_key
from approval_gate.exceptions import UnknownJobTypeError
from tests.constants import BASIC_JOB, COMPRESSED_JOB, MAX_ACTIVE_JOB


class TestApproveOptionSplitting:
    """Tests for splitting approval options off job args."""

    def test_args_without_trailing_mapping(self):
        args, options = split_approve_options(["a", 1])

        assert args == ["a", 1]
        assert options.approval_key is None

    def test_user_keys_stay_with_args(self):
        args, options = split_approve_options(
            ["a", {"approval_key": "K", "approval_queue": "q", "color": "red"}]
        )

        assert args == ["a", {"color": "red"}]
        assert options.approval_key == "K"
        assert options.approval_queue == "q"

    def test_mapping_of_only_options_is_dropped(self):
        args, options = split_approve_options(["a", {"requires_approval": True}])

        assert args == ["a"]
        assert options.requires_approval is True

    def test_numeric_approval_key_becomes_string(self):
        _, options = split_approve_options([{"approval_key": 42}])

        assert options.approval_key == "42"

    def test_approval_at_is_parsed(self):
        _, options = split_approve_options(
            [{"approval_key": "K", "approval_at": "2030-01-01T00:00:00+00:00"}]
        )

        assert options.approval_at == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_malformed_option_drops_only_that_option(self):
        args, options = split_approve_options(
            ["a", {"approval_key": "K", "approval_queue": "q", "approval_at": "not-a-time"}]
        )

        assert args == ["a"]
        assert options.approval_at is None
        assert options.approval_key == "K"
        assert options.approval_queue == "q"

    def test_malformed_requires_approval_keeps_key(self):
        _, options = split_approve_options([{"approval_key": "K", "requires_approval": "maybe"}])

        assert options.approval_key == "K"
        assert options.requires_approval is None

    def test_naive_approval_at_is_utc(self):
        _, options = split_approve_options(
            [{"approval_key": "K", "approval_at": "2030-01-01T12:00:00"}]
        )

        assert options.approval_at == datetime(2030, 1, 1, 12, tzinfo=timezone.utc)

    def test_with_approval_key_appends_mapping(self):
        assert with_approval_key(["a"], "K") == ["a", {"approval_key": "K"}]
        assert with_approval_key(["a", {"x": 1}], "K") == [
            "a",
            {"x": 1, "approval_key": "K"},
        ]


class TestPendingJob:
    """Tests for persisting, loading and releasing pending jobs."""

    @pytest.fixture
    def job(self, context: ApproveContext) -> PendingJob:
        return PendingJob(
            context,
            job_type=BASIC_JOB,
            args=["a", 1, {"approval_key": "K", "color": "red"}],
        )

    def test_id_defaults_to_unique_token(self, context: ApproveContext):
        first = PendingJob(context)
        second = PendingJob(context)

        assert first.id
        assert first.id != second.id

    def test_equality_and_ordering_by_id(self, context: ApproveContext):
        assert PendingJob(context, "a") == PendingJob(context, "a")
        assert PendingJob(context, "a") != PendingJob(context, "b")
        assert PendingJob(context, "a") < PendingJob(context, "b")
        assert len({PendingJob(context, "a"), PendingJob(context, "a")}) == 1
        assert sorted([PendingJob(context, "b"), PendingJob(context, "a")])[0].id == "a"

    @pytest.mark.asyncio
    async def test_save_and_load(self, context: ApproveContext, job: PendingJob):
        await job.save()

        loaded = await PendingJob.fetch(context, job.id)

        assert loaded.job_type == BASIC_JOB
        assert loaded.args == ["a", 1, {"color": "red"}]
        assert loaded.approval_key == "K"
        assert loaded.queue_time is not None
        assert loaded == job

    @pytest.mark.asyncio
    async def test_unloaded_job_reports_defaults(self, context: ApproveContext, job: PendingJob):
        await job.save()

        unloaded = PendingJob(context, job.id)

        assert unloaded.job_type is None
        assert unloaded.args == []
        assert unloaded.approval_key is None

        await unloaded.load()
        assert unloaded.job_type == BASIC_JOB

    @pytest.mark.asyncio
    async def test_unknown_id_loads_empty(self, context: ApproveContext):
        job = await PendingJob.fetch(context, "missing")

        assert job.job_type is None
        assert job.args == []
        assert job.queue_time is None
        assert job.requires_approval is False

    @pytest.mark.asyncio
    async def test_malformed_stored_values_load_empty(self, context: ApproveContext):
        await context.redis.hset(
            context.pending_job_key("broken"),
            mapping={"class_name": BASIC_JOB, "args": "{not json", "approve_options": "[]"},
        )

        job = await PendingJob.fetch(context, "broken")

        assert job.job_type == BASIC_JOB
        assert job.args == []
        assert job.approval_key is None

    @pytest.mark.asyncio
    async def test_delete_twice_is_harmless(self, context: ApproveContext, job: PendingJob):
        await PendingJobQueue(context, "K").add_job(job)

        assert await PendingJob(context, job.id).delete() is True
        assert await PendingJob(context, job.id).delete() is False

        assert await context.redis.exists(context.pending_job_key(job.id)) == 0
        assert await PendingJobQueue(context, "K").num_jobs() == 0

    @pytest.mark.asyncio
    async def test_enqueue_submits_without_options(
        self,
        context: ApproveContext,
        job: PendingJob,
        submitted,
    ):
        await job.save()

        result = await PendingJob(context, job.id).enqueue()

        assert result is True
        payloads = await submitted("basic")
        assert len(payloads) == 1
        assert payloads[0]["class"] == BASIC_JOB
        assert payloads[0]["args"] == ["a", 1, {"color": "red"}]
        assert await context.redis.exists(context.pending_job_key(job.id)) == 0

    @pytest.mark.asyncio
    async def test_enqueue_to_approval_queue(self, context: ApproveContext, submitted):
        job = PendingJob(
            context,
            job_type=BASIC_JOB,
            args=[{"approval_key": "K", "approval_queue": "urgent"}],
        )
        await job.save()

        await PendingJob(context, job.id).enqueue()

        assert await submitted("basic") == []
        assert [payload["args"] for payload in await submitted("urgent")] == [[]]

    @pytest.mark.asyncio
    async def test_enqueue_with_approval_at_schedules(
        self,
        context: ApproveContext,
        submitted,
        scheduled,
    ):
        at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        job = PendingJob(
            context,
            job_type=BASIC_JOB,
            args=["a", {"approval_key": "K", "approval_at": at.isoformat()}],
        )
        await job.save()

        await PendingJob(context, job.id).enqueue()

        assert await submitted("basic") == []
        entries = await scheduled("basic")
        assert len(entries) == 1
        payload, score = entries[0]
        assert payload["args"] == ["a"]
        assert score == at.timestamp()

    @pytest.mark.asyncio
    async def test_enqueue_missing_job_returns_none(self, context: ApproveContext, submitted):
        assert await PendingJob(context, "missing").enqueue() is None
        assert await submitted("basic") == []

    @pytest.mark.asyncio
    async def test_enqueue_unknown_job_type_raises(self, context: ApproveContext):
        await context.redis.hset(
            context.pending_job_key("orphan"),
            mapping={"class_name": "retired_job", "args": "[]"},
        )

        with pytest.raises(UnknownJobTypeError):
            await PendingJob(context, "orphan").enqueue()

    @pytest.mark.asyncio
    async def test_release_of_budget_job_reserves_slot(
        self,
        context: ApproveContext,
        submitted,
    ):
        job = PendingJob(context, job_type=MAX_ACTIVE_JOB, args=["x", {"approval_key": "K"}])
        await job.save()

        await PendingJob(context, job.id).enqueue()

        assert await PendingJobQueue(context, "K").num_running() == 1
        payloads = await submitted("limited")
        assert payloads[0]["args"] == ["x", {"approval_key": "K"}]


class TestCompressedPendingJob:
    """Tests for job types that compress their args."""

    @pytest.mark.asyncio
    async def test_compressed_args_round_trip_through_store(
        self,
        context: ApproveContext,
        submitted,
    ):
        codec = ZlibArgsCodec()
        job = PendingJob(
            context,
            job_type=COMPRESSED_JOB,
            args=codec.compress(["big", {"approval_key": "K"}]),
        )

        assert job.args == ["big"]
        assert job.approval_key == "K"

        await job.save()

        stored = json.loads(await context.redis.hget(context.pending_job_key(job.id), "args"))
        assert codec.is_compressed(stored)

        loaded = await PendingJob.fetch(context, job.id)
        assert loaded.args == ["big"]

        await loaded.enqueue()

        payloads = await submitted("compressed")
        assert codec.is_compressed(payloads[0]["args"])
        assert codec.decompress(payloads[0]["args"]) == ["big"]
