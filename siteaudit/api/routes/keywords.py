from __future__ import annotations

import json
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from siteaudit.errors import AuditSetupError, CrawlProviderError
from siteaudit.models.schemas import KeywordSearchRequest, KeywordSearchResponse
from siteaudit.services import streaming
from siteaudit.services.keyword_search import KeywordSearchPipeline
from siteaudit.services.runtime import get_broadcaster, get_keyword_pipeline
from siteaudit.services.status_channel import StatusBroadcaster

router = APIRouter(prefix="/api/keyword-search", tags=["keyword-search"])


@router.post("", response_model=KeywordSearchResponse)
async def keyword_search(
    request: KeywordSearchRequest,
    pipeline: KeywordSearchPipeline = Depends(get_keyword_pipeline),
):
    search_id = request.search_id or str(uuid.uuid4())
    try:
        rows = await pipeline.run(
            request.query,
            request.user_id,
            search_id=search_id,
            creator_name=request.creator_name,
            creator_email=request.creator_email,
        )
    except AuditSetupError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CrawlProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return KeywordSearchResponse(search_id=search_id, results=rows, count=len(rows))


@router.get("/{search_id}/stream")
async def stream_keyword_search(
    search_id: str,
    broadcaster: StatusBroadcaster = Depends(get_broadcaster),
):
    subscription = broadcaster.subscribe(streaming.search_channel(search_id))

    async def event_generator():
        async with subscription:
            async for event in subscription:
                yield {"event": event.event.value, "data": json.dumps(event.payload())}

    return EventSourceResponse(event_generator())
