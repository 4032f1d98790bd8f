"""Result values returned by task generation.

Errors are returned rather than raised so a caller running under a process
group can decide whether to abort the whole group or retry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .datastructures import Subvolume


class TaskError(Enum):
    """Reasons task generation can fail."""

    ENVIRONMENT = "environment"  # rank/size of the process group unavailable


@dataclass(frozen=True)
class TaskResult:
    """Either the subvolumes owned by this process or an error."""

    subvolumes: List[Subvolume] = field(default_factory=list)
    error: Optional[TaskError] = None
    message: str = ""

    @classmethod
    def success(cls, subvolumes: List[Subvolume]) -> "TaskResult":
        return cls(subvolumes=list(subvolumes))

    @classmethod
    def failure(cls, error: TaskError, message: str = "") -> "TaskResult":
        return cls(error=error, message=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def value(self) -> List[Subvolume]:
        """Subvolumes, or RuntimeError if task generation failed."""
        if not self.ok:
            raise RuntimeError(f"Task generation failed ({self.error.value}): {self.message}")
        return self.subvolumes
