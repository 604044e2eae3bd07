"""Keyword discovery: web search, LLM company extraction, persisted lead rows."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

from siteaudit.config import settings
from siteaudit.errors import AuditSetupError, CompletionError
from siteaudit.llm_client import CompletionClient
from siteaudit.services import streaming
from siteaudit.services.job_store import KeywordResultStore
from siteaudit.services.logger import log_event, logger
from siteaudit.services.prompt_store import render_prompt
from siteaudit.services.status_channel import StatusBroadcaster


class SearchProvider(Protocol):
    async def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]: ...


@dataclass(slots=True)
class KeywordSearchResult:
    url: str
    company_name: str
    company_description: str = ""


def _compact_results(raw: list[dict[str, Any]]) -> list[dict[str, str]]:
    # Markdown bodies are large; the extraction prompt only needs the headline fields.
    return [
        {
            "url": str(item.get("url") or ""),
            "title": str(item.get("title") or ""),
            "description": str(item.get("description") or "")[:500],
        }
        for item in raw
        if item.get("url")
    ]


def map_raw_results(raw: list[dict[str, Any]]) -> list[KeywordSearchResult]:
    return [
        KeywordSearchResult(
            url=str(item["url"]),
            company_name=str(item.get("title") or "Unknown"),
            company_description=str(item.get("description") or ""),
        )
        for item in raw
        if item.get("url")
    ]


def parse_extraction(text: str) -> list[KeywordSearchResult]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Keyword extraction returned unparsable JSON")
        return []
    items = payload.get("results") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return []
    results: list[KeywordSearchResult] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict) or not item.get("url"):
            continue
        url = str(item["url"]).strip()
        if url.lower() in seen:
            continue
        seen.add(url.lower())
        results.append(
            KeywordSearchResult(
                url=url,
                company_name=str(item.get("company_name") or "Unknown"),
                company_description=str(item.get("company_description") or ""),
            )
        )
    return results


class KeywordSearchPipeline:
    def __init__(
        self,
        search_provider: SearchProvider,
        completion: CompletionClient,
        store: KeywordResultStore,
        broadcaster: StatusBroadcaster,
        *,
        limit: int | None = None,
        model: str | None = None,
    ):
        self.search_provider = search_provider
        self.completion = completion
        self.store = store
        self.broadcaster = broadcaster
        self.limit = limit or settings.keyword_search_limit
        self.model = model or settings.keyword_model

    async def run(
        self,
        query: str,
        user_id: str,
        *,
        search_id: str | None = None,
        creator_name: str | None = None,
        creator_email: str | None = None,
    ) -> list[dict[str, Any]]:
        if not (query or "").strip():
            raise AuditSetupError("query is required")
        if not (user_id or "").strip():
            raise AuditSetupError("user_id is required")
        search_id = search_id or str(uuid.uuid4())
        channel = streaming.search_channel(search_id)

        def status(message: str) -> None:
            self.broadcaster.publish(channel, streaming.status_update(message, search_id))

        try:
            status("Searching the web for matching companies...")
            raw = await self.search_provider.search(query, self.limit)
            logger.info(f"Keyword search '{query}' returned {len(raw)} raw results")

            status("Filtering for high-quality leads with AI...")
            results = await self._extract_companies(query, raw)

            status("Finalizing discovery batch...")
            rows = [
                {
                    "user_id": user_id,
                    "search_query": query,
                    "company_name": result.company_name,
                    "website": result.url,
                    "company_description": result.company_description,
                    "analyzed": False,
                    "analysis_id": None,
                    "creator_name": creator_name,
                    "creator_email": creator_email,
                }
                for result in results
            ]
            if rows:
                await self.store.insert_results(rows)
        except Exception as exc:
            self.broadcaster.publish(channel, streaming.search_failed(search_id, str(exc)))
            raise

        self.broadcaster.publish(channel, streaming.search_completed(search_id, len(rows)))
        log_event("keyword_search_completed", "Keyword search stored", search_id=search_id, count=len(rows))
        return rows

    async def _extract_companies(self, query: str, raw: list[dict[str, Any]]) -> list[KeywordSearchResult]:
        if not raw:
            return []
        compact = _compact_results(raw)
        try:
            text = await self.completion.complete(
                render_prompt("keyword.system"),
                [
                    {
                        "role": "user",
                        "content": render_prompt(
                            "keyword.user",
                            query=query,
                            results=json.dumps(compact, ensure_ascii=False, indent=2),
                        ),
                    }
                ],
                model=self.model,
                response_format={"type": "json_object"},
                temperature=0.2,
                max_tokens=4000,
                retries=1,
                caller="keyword_extraction",
            )
        except CompletionError as exc:
            logger.warning(f"Keyword extraction failed, mapping raw results instead: {exc}")
            return map_raw_results(compact)
        return parse_extraction(text)

