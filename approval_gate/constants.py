"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class SortKey(StrEnum):
    """Columns the approval key list can be sorted by."""

    APPROVAL_KEY = "approval_key"
    NUM_JOBS = "num_jobs"
    COUNT = "count"
    FIRST_ENQUEUED = "first_enqueued"


class SortOrder(StrEnum):
    """Sort direction for paged views."""

    ASC = "asc"
    DESC = "desc"


# Options consumed by the gate; never passed through to the job itself
APPROVAL_OPTION_KEYS: tuple[str, ...] = (
    "approval_key",
    "approval_queue",
    "approval_at",
    "requires_approval",
)

# Default values
DEFAULT_PAGE_SIZE = 20
DEFAULT_KEY_PREFIX = "approve"
UNLIMITED_ACTIVE_JOBS = -1

# Redis key suffixes (joined to the configured prefix with ".")
PENDING_JOB_KEY = "pending_job"
JOB_QUEUE_KEY = "job_queue"
APPROVAL_KEY_LIST_KEY = "approval_key_list"
PAUSED_SUFFIX = "paused"
PAUSED_COUNT_SUFFIX = "paused.count"
RUNNING_SUFFIX = "running"

# Broker key names (Resque-compatible layout)
BROKER_QUEUES_KEY = "queues"
BROKER_QUEUE_PREFIX = "queue:"
BROKER_DELAYED_PREFIX = "delayed:"

# Compressed argument envelope marker
COMPRESSED_MARKER = "approval_gate_compressed"

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_JOBS_DEFERRED = "approval_jobs_deferred_total"
METRIC_JOBS_ADMITTED = "approval_jobs_admitted_total"
METRIC_JOBS_RELEASED = "approval_jobs_released_total"
METRIC_JOBS_REMOVED = "approval_jobs_removed_total"
METRIC_PAUSED_SKIPS = "approval_paused_skips_total"
METRIC_RECONCILE_REPAIRS = "approval_reconcile_repairs_total"
METRIC_APPROVAL_QUEUES = "approval_queues"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_BEFORE_ENQUEUE = "gate_before_enqueue"
SPAN_BEFORE_PERFORM = "gate_before_perform"
SPAN_RELEASE_JOB = "release_job"
SPAN_CLEANUP_JOBS = "cleanup_jobs"
SPAN_CLEANUP_QUEUES = "cleanup_queues"
