"""
Exceptions raised by the approval gate.
"""


class ApprovalGateError(Exception):
    """Base class for all approval gate errors."""


class JobNotApproved(ApprovalGateError):
    """
    Raised when a job attempts direct execution while it still needs approval.

    The job has already been persisted into its pending queue when this is
    raised, so callers should treat it as a control signal and skip the run.
    """

    def __init__(self, job_type: str, approval_key: str | None, job_id: str):
        self.job_type = job_type
        self.approval_key = approval_key
        self.job_id = job_id
        super().__init__("The job has not been approved yet.")


class UnknownJobTypeError(ApprovalGateError, KeyError):
    """Raised when a job type has no registered descriptor."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"No job type registered as: {job_type}")
