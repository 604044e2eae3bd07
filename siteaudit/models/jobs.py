from __future__ import annotations

from enum import Enum

from siteaudit.errors import JobStateError


class JobStatus(str, Enum):
    PENDING = "pending"
    CRAWLING = "crawling"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, new: "JobStatus") -> bool:
        if self.terminal:
            return new == self
        if new == JobStatus.FAILED:
            return True
        return _ORDER[new] >= _ORDER[self]


_ORDER = {
    JobStatus.PENDING: 0,
    JobStatus.CRAWLING: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}


def advance(current: JobStatus | str, new: JobStatus | str) -> JobStatus:
    """Return ``new`` if the lifecycle allows it, raise otherwise."""
    current = JobStatus(current)
    new = JobStatus(new)
    if not current.can_transition_to(new):
        raise JobStateError(f"Job status cannot move from {current.value} to {new.value}")
    return new
