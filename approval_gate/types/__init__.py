"""
Type definitions for the approval gate.
Contains input/output type definitions for all functions, grouped by module.
"""

from approval_gate.types.api import (
    ActionResponse,
    ApprovalQueueListResponse,
    ApprovalQueueResponse,
    ApproveNumRequest,
    AuthRequest,
    ErrorResponse,
    HealthResponse,
    PendingJobListResponse,
    PendingJobResponse,
    TokenResponse,
)
from approval_gate.types.job import (
    ApproveOptions,
    ArgsCodec,
    JobTypeDescriptor,
)

__all__ = [
    # API types
    "ApprovalQueueResponse",
    "ApprovalQueueListResponse",
    "PendingJobResponse",
    "PendingJobListResponse",
    "ApproveNumRequest",
    "ActionResponse",
    "TokenResponse",
    "AuthRequest",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "ApproveOptions",
    "ArgsCodec",
    "JobTypeDescriptor",
]
