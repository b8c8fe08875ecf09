"""
Job-related type definitions for internal use.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from approval_gate.constants import APPROVAL_OPTION_KEYS, UNLIMITED_ACTIVE_JOBS

logger = logging.getLogger(__name__)


class ApproveOptions(BaseModel):
    """
    Approval-only options split off the trailing mapping of a job's args.

    These never reach the job itself when it is released.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    approval_key: str | None = None
    approval_queue: str | None = None
    approval_at: datetime | None = None
    requires_approval: bool | None = None

    @field_validator("approval_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive times are UTC so every process schedules the same instant
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_mapping(cls, value: Any) -> "ApproveOptions":
        """
        Build options from a mapping, ignoring anything malformed.

        Each option is validated on its own: a bad value drops only that
        option, so a valid approval_key survives a malformed approval_at.

        Args:
            value: A mapping possibly holding approval options.

        Returns:
            The parsed options, or empty options if the payload is not a mapping.
        """
        if not isinstance(value, Mapping):
            return cls()

        candidate = {key: value[key] for key in APPROVAL_OPTION_KEYS if key in value}
        try:
            return cls.model_validate(candidate)
        except ValidationError as e:
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
            logger.warning(
                "Ignoring malformed approval options",
                extra={"fields": sorted(str(field) for field in invalid), "error": str(e)},
            )

        return cls.model_validate(
            {key: option for key, option in candidate.items() if key not in invalid}
        )

    def to_mapping(self) -> dict[str, Any]:
        """Dump the options that are set, in JSON-safe form."""
        return self.model_dump(mode="json", exclude_none=True)


class ArgsCodec(Protocol):
    """Compression capability a job type may declare for its args."""

    def is_compressed(self, args: list[Any]) -> bool:
        ...

    def compress(self, args: list[Any]) -> list[Any]:
        ...

    def decompress(self, args: list[Any]) -> list[Any]:
        ...


@dataclass(frozen=True)
class JobTypeDescriptor:
    """
    Static configuration for one job type, supplied at startup.

    A positive max_active_jobs puts the job type under a concurrency budget:
    submissions beyond the budget are deferred and completions release them.
    """

    name: str
    queue_name: str
    default_queue_name: str | None = None
    max_active_jobs: int = UNLIMITED_ACTIVE_JOBS
    auto_delete_approval_key: bool = False
    codec: ArgsCodec | None = None

    @property
    def approval_queue_name(self) -> str:
        """Approval key used when the gate has to synthesize one."""
        return self.default_queue_name or self.queue_name

    @property
    def has_budget(self) -> bool:
        """Check if the job type is limited by a concurrency budget."""
        return self.max_active_jobs > 0

    @property
    def is_compressed(self) -> bool:
        """Check if the job type compresses its args."""
        return self.codec is not None
