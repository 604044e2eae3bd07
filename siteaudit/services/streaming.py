from __future__ import annotations

from siteaudit.models.events import EventStatus, StatusEvent


def job_channel(job_id: str) -> str:
    return f"job-status-{job_id}"


def search_channel(search_id: str) -> str:
    return f"search-status-{search_id}"


def status_update(message: str, job_id: str | None = None) -> StatusEvent:
    return StatusEvent(message=message, status=EventStatus.PROCESSING, id=job_id)


def audit_completed(job_id: str, score: int, degraded: bool = False) -> StatusEvent:
    return StatusEvent(
        message="Audit completed!",
        status=EventStatus.COMPLETED,
        id=job_id,
        extra={"score": score, "degraded": degraded},
    )


def audit_failed(job_id: str, error: str) -> StatusEvent:
    return StatusEvent(message=f"Failed: {error[:100]}", status=EventStatus.FAILED, id=job_id)


def search_completed(search_id: str, count: int) -> StatusEvent:
    return StatusEvent(message="Search complete!", status=EventStatus.COMPLETED, id=search_id, count=count)


def search_failed(search_id: str, error: str) -> StatusEvent:
    return StatusEvent(message=f"Search failed: {error[:100]}", status=EventStatus.FAILED, id=search_id)
