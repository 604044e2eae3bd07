from __future__ import annotations

import asyncio
import json
from typing import Any

from supabase import Client, create_client

from siteaudit.audit_core.models.interfaces import DocumentChunk, RetrievedChunk
from siteaudit.config import settings
from siteaudit.services.job_store import new_job_row
from siteaudit.services.logger import log_db_operation


def get_client() -> Client:
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


_client: Client | None = None


def client() -> Client:
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def _execute(query: Any) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    return await asyncio.to_thread(query.execute)


def _coerce_json_object(value: Any) -> dict[str, Any]:
    """Normalize JSON-string columns into dictionaries."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _coerce_vector(value: Any) -> list[float]:
    # pgvector columns come back as "[0.1,0.2,...]" strings over PostgREST.
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if isinstance(value, list):
        return [float(v) for v in value]
    return []


def _normalize_job(row: dict[str, Any]) -> dict[str, Any]:
    for key in ("raw_data", "report"):
        if row.get(key) is not None:
            row[key] = _coerce_json_object(row[key])
    return row


# --- Jobs ---


class SupabaseJobRepository:
    table = "jobs"

    def __init__(self, db: Client | None = None):
        self._db = db

    @property
    def db(self) -> Client:
        return self._db or client()

    async def create_job(self, data: dict[str, Any]) -> dict[str, Any]:
        row = new_job_row(data)
        result = await _execute(self.db.table(self.table).insert(row))
        log_db_operation("insert", self.table, details=row["id"])
        return _normalize_job(result.data[0])

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        result = await _execute(self.db.table(self.table).select("*").eq("id", job_id))
        return _normalize_job(result.data[0]) if result.data else None

    async def update_job(self, job_id: str, **fields: Any) -> dict[str, Any] | None:
        result = await _execute(self.db.table(self.table).update(fields).eq("id", job_id))
        log_db_operation("update", self.table, details=f"{job_id}: {sorted(fields)}")
        return _normalize_job(result.data[0]) if result.data else None

    async def find_reusable_job(self, url: str, exclude_id: str | None = None) -> dict[str, Any] | None:
        query = (
            self.db.table(self.table)
            .select("*")
            .eq("url", url)
            .eq("crawl_status", "completed")
            .not_.is_("raw_data", "null")
            .order("crawled_at", desc=True)
            .limit(5)
        )
        result = await _execute(query)
        for row in result.data or []:
            if exclude_id and row.get("id") == exclude_id:
                continue
            row = _normalize_job(row)
            if (row.get("raw_data") or {}).get("crawl"):
                return row
        return None

    async def list_jobs(self, user_id: str) -> list[dict[str, Any]]:
        result = await _execute(
            self.db.table(self.table).select("*").eq("user_id", user_id).order("created_at", desc=True)
        )
        return [_normalize_job(row) for row in result.data or []]


# --- Document chunks ---


class SupabaseChunkStore:
    table = "document_chunks"

    def __init__(self, db: Client | None = None, *, insert_batch_size: int = 50, page_size: int = 1000):
        self._db = db
        self.insert_batch_size = insert_batch_size
        # PostgREST caps each response at max-rows (1000 by default).
        self.page_size = page_size

    @property
    def db(self) -> Client:
        return self._db or client()

    async def insert_chunks(self, job_id: str, chunks: list[DocumentChunk]) -> int:
        rows = [
            {
                "job_id": job_id,
                "url": chunk.url,
                "content": chunk.content,
                "metadata": chunk.metadata,
                "embedding": chunk.embedding,
            }
            for chunk in chunks
        ]
        for start in range(0, len(rows), self.insert_batch_size):
            await _execute(self.db.table(self.table).insert(rows[start:start + self.insert_batch_size]))
        log_db_operation("insert", self.table, details=f"{job_id}: {len(rows)} chunks")
        return len(rows)

    async def nearest_chunks(
        self, job_id: str, embedding: list[float], k: int, threshold: float
    ) -> list[RetrievedChunk]:
        result = await _execute(
            self.db.rpc(
                "match_document_chunks",
                {
                    "query_embedding": embedding,
                    "match_threshold": threshold,
                    "match_count": k,
                    "filter_job_id": job_id,
                },
            )
        )
        hits = [
            RetrievedChunk(
                url=str(row.get("url") or ""),
                content=str(row.get("content") or ""),
                similarity=float(row.get("similarity") or 0.0),
                metadata=_coerce_json_object(row.get("metadata")),
            )
            for row in result.data or []
        ]
        return [hit for hit in hits if hit.similarity > threshold]

    async def fetch_chunks(self, job_id: str) -> list[DocumentChunk]:
        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            result = await _execute(
                self.db.table(self.table)
                .select("url, content, metadata, embedding")
                .eq("job_id", job_id)
                .order("id")
                .range(start, start + self.page_size - 1)
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < self.page_size:
                break
            start += self.page_size
        return [
            DocumentChunk(
                url=str(row.get("url") or ""),
                content=str(row.get("content") or ""),
                embedding=_coerce_vector(row.get("embedding")),
                metadata=_coerce_json_object(row.get("metadata")),
            )
            for row in rows
        ]

    async def count_chunks(self, job_id: str) -> int:
        result = await _execute(
            self.db.table(self.table).select("id", count="exact").eq("job_id", job_id).limit(1)
        )
        return int(result.count or 0)


# --- Keyword search results ---


class SupabaseKeywordResultStore:
    table = "keyword_search_results"

    def __init__(self, db: Client | None = None):
        self._db = db

    @property
    def db(self) -> Client:
        return self._db or client()

    async def insert_results(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not rows:
            return []
        result = await _execute(self.db.table(self.table).insert(rows))
        log_db_operation("insert", self.table, details=f"{len(rows)} rows")
        return result.data or []
