from __future__ import annotations

from typing import Any

from pydantic import BaseModel


# --- Requests ---


class AuditRequest(BaseModel):
    url: str
    user_id: str
    job_id: str | None = None
    force_recrawl: bool = False
    creator_name: str | None = None
    creator_email: str | None = None


class KeywordSearchRequest(BaseModel):
    query: str
    user_id: str
    search_id: str | None = None
    creator_name: str | None = None
    creator_email: str | None = None


# --- Responses ---


class AuditStartResponse(BaseModel):
    success: bool = True
    job_id: str
    message: str = "Audit started"


class JobResponse(BaseModel):
    id: str
    url: str
    status: str
    status_message: str | None = None
    score: int | None = None
    report: dict[str, Any] | None = None
    raw_data: dict[str, Any] | None = None
    crawl_status: str | None = None
    crawled_at: str | None = None
    completed_at: str | None = None
    created_at: str | None = None


class KeywordSearchResponse(BaseModel):
    success: bool = True
    search_id: str
    results: list[dict[str, Any]]
    count: int
