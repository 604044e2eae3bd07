"""Thin httpx client for the Firecrawl crawl/scrape/map/search endpoints."""
from __future__ import annotations

from typing import Any

import httpx

from siteaudit.audit_core.models.interfaces import CrawlPoll, RawPage
from siteaudit.config import settings
from siteaudit.errors import CrawlProviderError
from siteaudit.services.logger import logger


def _to_raw_page(item: Any, fallback_url: str = "") -> RawPage | None:
    if not isinstance(item, dict):
        return None
    metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
    url = str(metadata.get("sourceURL") or metadata.get("url") or item.get("url") or fallback_url)
    if not url:
        return None
    return RawPage(
        url=url,
        markdown=str(item.get("markdown") or ""),
        title=str(metadata.get("title") or item.get("title") or ""),
        html=str(item.get("html") or ""),
    )


def _to_raw_pages(items: Any) -> list[RawPage]:
    if not isinstance(items, list):
        return []
    pages = [_to_raw_page(item) for item in items]
    return [page for page in pages if page is not None]


class FirecrawlClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = (settings.firecrawl_api_key if api_key is None else api_key).strip()
        self.base_url = (base_url or settings.firecrawl_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def _post(self, path: str, payload: dict[str, Any], *, timeout: float | None = None) -> dict[str, Any]:
        async with self._client(timeout) as client:
            response = await client.post(self.base_url + path, json=payload, headers=self._headers())
        if response.status_code >= 400:
            raise CrawlProviderError(f"Firecrawl {path} returned HTTP {response.status_code}: {response.text[:200]}")
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def start_crawl(self, url: str, limit: int) -> dict[str, Any]:
        """Start a crawl job. Small sites may come back already completed."""
        data = await self._post(
            "/v2/crawl",
            {"url": url, "limit": limit, "scrapeOptions": {"formats": ["markdown", "html"]}},
        )
        result: dict[str, Any] = {"id": data.get("id"), "status": data.get("status") or "scraping"}
        if data.get("status") == "completed" and data.get("data"):
            result["pages"] = _to_raw_pages(data.get("data"))
        return result

    async def poll_crawl(self, crawl_id: str) -> CrawlPoll:
        async with self._client() as client:
            response = await client.get(f"{self.base_url}/v2/crawl/{crawl_id}", headers=self._headers())
        if response.status_code >= 400:
            raise CrawlProviderError(f"Firecrawl crawl status returned HTTP {response.status_code}")
        data = response.json() if response.content else {}
        status = str(data.get("status") or "unknown")
        if status not in ("scraping", "completed", "failed", "cancelled"):
            status = "unknown"
        return CrawlPoll(
            status=status,  # type: ignore[arg-type]
            pages=_to_raw_pages(data.get("data")),
            completed=int(data.get("completed") or 0),
            total=int(data.get("total") or 0),
        )

    async def scrape_one(self, url: str, *, timeout_ms: int | None = None) -> RawPage | None:
        """Scrape one URL. Missing pages and provider errors yield None."""
        timeout_ms = timeout_ms or settings.legal_fetch_timeout_ms
        try:
            data = await self._post(
                "/v1/scrape",
                {"url": url, "formats": ["markdown"], "timeout": timeout_ms},
                timeout=timeout_ms / 1000.0 + 5.0,
            )
        except (CrawlProviderError, httpx.HTTPError, ValueError) as exc:
            logger.debug(f"Direct scrape failed for {url}: {exc}")
            return None
        if not data.get("success") or not isinstance(data.get("data"), dict):
            return None
        page = _to_raw_page(data["data"], fallback_url=url)
        if page is None or not page.markdown.strip():
            return None
        # Keep the requested URL so the merge step dedupes against the path we asked for.
        page.url = url
        return page

    async def map_site(self, url: str, *, limit: int = 2000) -> list[str]:
        data = await self._post(
            "/v2/map",
            {"url": url, "search": "", "ignoreQueryParameters": True, "limit": limit},
        )
        links = data.get("links") or data.get("data") or []
        urls: list[str] = []
        for link in links if isinstance(links, list) else []:
            value = link if isinstance(link, str) else link.get("url") if isinstance(link, dict) else None
            if value:
                urls.append(str(value))
        return urls

    async def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._post(
            "/v1/search",
            {"query": query, "limit": limit, "scrapeOptions": {"formats": ["markdown"]}},
            timeout=60.0,
        )
        results = data.get("data") or []
        return [item for item in results if isinstance(item, dict)] if isinstance(results, list) else []
