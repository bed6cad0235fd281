"""Assignment result and job state models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    success: bool
    message: str
    driver_id: Optional[str] = None

    @classmethod
    def succeeded(cls, driver_id: str) -> "AssignmentResult":
        return cls(success=True, message=f"Driver {driver_id} assigned successfully", driver_id=driver_id)

    @classmethod
    def failed(cls, message: str) -> "AssignmentResult":
        return cls(success=False, message=message)
