from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Protocol


class JobRepository(Protocol):
    async def create_job(self, data: dict[str, Any]) -> dict[str, Any]: ...

    async def get_job(self, job_id: str) -> dict[str, Any] | None: ...

    async def update_job(self, job_id: str, **fields: Any) -> dict[str, Any] | None: ...

    async def find_reusable_job(self, url: str, exclude_id: str | None = None) -> dict[str, Any] | None: ...

    async def list_jobs(self, user_id: str) -> list[dict[str, Any]]: ...


class KeywordResultStore(Protocol):
    async def insert_results(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]: ...


def new_job_row(data: dict[str, Any]) -> dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "status": "pending",
        "status_message": "Initializing...",
        "report": None,
        "score": None,
        "raw_data": None,
        "crawl_status": None,
        "crawled_at": None,
        "completed_at": None,
        "is_public": False,
        "created_at": datetime.now(UTC).isoformat(),
    }
    row.update(data)
    return row


class InMemoryJobRepository:
    def __init__(self) -> None:
        self._jobs: dict[str, dict[str, Any]] = {}

    async def create_job(self, data: dict[str, Any]) -> dict[str, Any]:
        row = new_job_row(data)
        self._jobs[row["id"]] = row
        return dict(row)

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        row = self._jobs.get(job_id)
        return dict(row) if row else None

    async def update_job(self, job_id: str, **fields: Any) -> dict[str, Any] | None:
        row = self._jobs.get(job_id)
        if row is None:
            return None
        row.update(fields)
        return dict(row)

    async def find_reusable_job(self, url: str, exclude_id: str | None = None) -> dict[str, Any] | None:
        candidates = [
            row
            for row in self._jobs.values()
            if row.get("url") == url
            and row.get("id") != exclude_id
            and row.get("crawl_status") == "completed"
            and isinstance(row.get("raw_data"), dict)
            and row["raw_data"].get("crawl")
        ]
        candidates.sort(key=lambda row: row.get("crawled_at") or row.get("created_at") or "", reverse=True)
        return dict(candidates[0]) if candidates else None

    async def list_jobs(self, user_id: str) -> list[dict[str, Any]]:
        rows = [dict(row) for row in self._jobs.values() if row.get("user_id") == user_id]
        rows.sort(key=lambda row: row.get("created_at") or "", reverse=True)
        return rows


class InMemoryKeywordResultStore:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []

    async def insert_results(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        stored = [{"id": str(uuid.uuid4()), **row} for row in rows]
        self.rows.extend(stored)
        return stored
