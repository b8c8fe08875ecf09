"""
Approve module.
Contains the gate, pending jobs and their queues, and the auto-release hook.
"""

from approval_gate.approve.context import ApproveContext, create_context
from approval_gate.approve.job_types import JobTypeRegistry
from approval_gate.approve.codec import ZlibArgsCodec
from approval_gate.approve.pending_job import PendingJob
from approval_gate.approve.pending_job_queue import PendingJobQueue
from approval_gate.approve.approval_key_list import ApprovalKeyList
from approval_gate.approve.gate import Gate
from approval_gate.approve.auto_release import auto_release

__all__ = [
    "ApproveContext",
    "create_context",
    "JobTypeRegistry",
    "ZlibArgsCodec",
    "PendingJob",
    "PendingJobQueue",
    "ApprovalKeyList",
    "Gate",
    "auto_release",
]
