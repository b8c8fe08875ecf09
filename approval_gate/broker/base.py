"""
Broker interface consumed by the approval gate.

The gate never executes jobs; it only hands them to a broker, either
immediately or scheduled for later.
"""

from datetime import datetime
from typing import Any, Protocol


class Broker(Protocol):
    """Job-processing broker the gate submits released jobs to."""

    async def submit(self, queue: str, job_type: str, args: list[Any]) -> Any:
        """Submit a job for immediate processing."""
        ...

    async def submit_at(
        self,
        queue: str,
        at: datetime,
        job_type: str,
        args: list[Any],
    ) -> Any:
        """Submit a job to be processed no earlier than `at`."""
        ...

    def queue_for(self, job_type: str) -> str:
        """Resolve the queue a job type is processed from."""
        ...
