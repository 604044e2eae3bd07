from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from siteaudit.errors import AuditSetupError, ServerBusyError
from siteaudit.models.events import StatusEvent
from siteaudit.models.jobs import JobStatus
from siteaudit.models.schemas import AuditRequest, AuditStartResponse, JobResponse
from siteaudit.services import streaming
from siteaudit.services.audit_jobs import AuditJobManager
from siteaudit.services.job_store import JobRepository
from siteaudit.services.logger import log_event
from siteaudit.services.runtime import get_audit_manager, get_broadcaster, get_job_repository
from siteaudit.services.status_channel import StatusBroadcaster

router = APIRouter(prefix="/api/audits", tags=["audits"])


def _snapshot_event(job: dict) -> StatusEvent | None:
    """Terminal event for a job that already finished before the client subscribed."""
    job_id = str(job["id"])
    status = job.get("status")
    if status == JobStatus.COMPLETED.value:
        return streaming.audit_completed(job_id, int(job.get("score") or 0))
    if status == JobStatus.FAILED.value:
        message = str(job.get("status_message") or "")
        return streaming.audit_failed(job_id, message.removeprefix("Failed: "))
    return None


@router.post("", response_model=AuditStartResponse)
async def start_audit(
    request: AuditRequest,
    manager: AuditJobManager = Depends(get_audit_manager),
):
    """Start an audit in the background. Returns the job id to poll or stream."""
    try:
        job_id = await manager.start_audit(
            request.url,
            request.user_id,
            job_id=request.job_id,
            reject_when_busy=True,
            force_recrawl=request.force_recrawl,
            creator_name=request.creator_name,
            creator_email=request.creator_email,
        )
    except ServerBusyError as exc:
        log_event("audit_rejected", "Audit rejected, server busy", url=request.url)
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except AuditSetupError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return AuditStartResponse(job_id=job_id)


@router.get("/{job_id}", response_model=JobResponse)
async def get_audit(job_id: str, jobs: JobRepository = Depends(get_job_repository)):
    job = await jobs.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Audit not found")
    return JobResponse(**job)


@router.get("/{job_id}/stream")
async def stream_audit(
    job_id: str,
    jobs: JobRepository = Depends(get_job_repository),
    broadcaster: StatusBroadcaster = Depends(get_broadcaster),
):
    """SSE endpoint relaying the job's status events until it completes or fails."""
    # Subscribe first so a terminal event published during the lookup is queued.
    subscription = broadcaster.subscribe(streaming.job_channel(job_id))
    job = await jobs.get_job(job_id)
    if not job:
        subscription.close()
        raise HTTPException(status_code=404, detail="Audit not found")

    finished = _snapshot_event(job)

    async def event_generator():
        async with subscription:
            if finished is not None:
                yield {"event": finished.event.value, "data": json.dumps(finished.payload())}
                return
            async for event in subscription:
                yield {"event": event.event.value, "data": json.dumps(event.payload())}

    return EventSourceResponse(event_generator())
