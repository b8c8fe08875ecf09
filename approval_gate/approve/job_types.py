"""
Registry mapping job-type identifiers to their descriptors.
"""

import logging

from approval_gate.approve.codec import ZlibArgsCodec
from approval_gate.config import Settings, get_settings
from approval_gate.exceptions import UnknownJobTypeError
from approval_gate.types.job import JobTypeDescriptor

logger = logging.getLogger(__name__)


class JobTypeRegistry:
    """
    Explicit registry of job types known to the gate.

    Built once at startup and shared by every component through the
    approve context.
    """

    def __init__(self, descriptors: list[JobTypeDescriptor] | None = None):
        self._descriptors: dict[str, JobTypeDescriptor] = {}
        for descriptor in descriptors or []:
            self.register(descriptor)

    def register(self, descriptor: JobTypeDescriptor) -> JobTypeDescriptor:
        """
        Register (or replace) a job type descriptor.

        Args:
            descriptor: The job type's static configuration.

        Returns:
            The registered descriptor.
        """
        self._descriptors[descriptor.name] = descriptor
        logger.info(
            f"Registered job type: {descriptor.name}",
            extra={
                "queue_name": descriptor.queue_name,
                "max_active_jobs": descriptor.max_active_jobs,
            },
        )
        return descriptor

    def get(self, job_type: str) -> JobTypeDescriptor:
        """
        Get the descriptor for a job type.

        Raises:
            UnknownJobTypeError: If the job type was never registered.
        """
        try:
            return self._descriptors[job_type]
        except KeyError:
            raise UnknownJobTypeError(job_type) from None

    def find(self, job_type: str | None) -> JobTypeDescriptor | None:
        """Get the descriptor for a job type, or None if unknown."""
        if job_type is None:
            return None
        return self._descriptors.get(job_type)

    def names(self) -> list[str]:
        """List all registered job types."""
        return list(self._descriptors.keys())

    def __contains__(self, job_type: object) -> bool:
        return job_type in self._descriptors


def registry_from_settings(settings: Settings | None = None) -> JobTypeRegistry:
    """
    Build a job type registry from the job types declared in settings.

    Args:
        settings: Settings to read from. Defaults to the cached settings.

    Returns:
        JobTypeRegistry: Registry holding every declared job type.
    """
    settings = settings or get_settings()

    return JobTypeRegistry(
        [
            JobTypeDescriptor(
                name=job_type.name,
                queue_name=job_type.queue_name,
                default_queue_name=job_type.default_queue_name,
                max_active_jobs=job_type.max_active_jobs,
                auto_delete_approval_key=job_type.auto_delete_approval_key,
                codec=ZlibArgsCodec() if job_type.compressed else None,
            )
            for job_type in settings.job_types
        ]
    )
