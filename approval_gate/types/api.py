"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from approval_gate.constants import SortKey, SortOrder


class ApprovalQueueResponse(BaseModel):
    """Summary of one approval key's pending job queue."""

    approval_key: str
    num_jobs: int
    first_enqueued: datetime | None
    paused: bool
    num_ignored: int
    num_running: int


class ApprovalQueueListResponse(BaseModel):
    """Paginated, sorted list of approval queues."""

    queues: list[ApprovalQueueResponse]
    total: int
    page: int
    page_size: int
    sort: SortKey
    order: SortOrder
    next_order: dict[str, SortOrder] = Field(
        default_factory=dict,
        description="Order to request when re-sorting by each column",
    )


class PendingJobResponse(BaseModel):
    """Full pending job details response."""

    id: str
    job_type: str | None
    args: list[Any]
    approve_options: dict[str, Any]
    approval_key: str | None
    queue_time: datetime | None


class PendingJobListResponse(BaseModel):
    """Paginated list of pending jobs for one approval key."""

    approval_key: str
    jobs: list[PendingJobResponse]
    total: int
    page: int
    page_size: int


class ApproveNumRequest(BaseModel):
    """Request body for releasing a number of jobs."""

    num: int = Field(default=1, ge=1, description="Number of jobs to release")


class ActionResponse(BaseModel):
    """Response body after a mutating admin action."""

    action: str
    approval_key: str | None = None
    count: int = 0
    message: str = "OK"


class AuthRequest(BaseModel):
    """Authentication request."""

    api_key: str = Field(..., description="Admin API key")
    operator: str = Field(..., description="Operator identifier")


class TokenResponse(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    redis: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
    request_id: str | None = None
