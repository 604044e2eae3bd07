from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Protocol

import httpx

from siteaudit.audit_core.crawl.extract import (
    analyze_translation_structure,
    classify_page,
    extract_contact_and_company,
    normalize_url,
)
from siteaudit.audit_core.models.interfaces import CrawlPoll, CrawlResult, Page, RawPage
from siteaudit.config import settings
from siteaudit.errors import CrawlProviderError
from siteaudit.services.logger import logger

StatusCallback = Callable[[str], Awaitable[None]]

LEGAL_PATHS: tuple[str, ...] = (
    # Legal
    "/impressum", "/imprint", "/legal-notice", "/legal", "/legal-info",
    "/datenschutz", "/privacy", "/privacy-policy", "/data-protection",
    "/agb", "/terms", "/terms-of-service", "/terms-and-conditions", "/conditions",
    "/widerruf", "/withdrawal", "/returns", "/refund", "/retour",
    "/colofon", "/algemene-voorwaarden", "/privacybeleid", "/privacyverklaring",
    "/cookies", "/disclaimer",
    # Contact / company
    "/kontakt", "/contact", "/contact-us", "/contactus", "/kontaktieren",
    "/about", "/about-us", "/uber-uns", "/ueber-uns", "/over-ons",
    "/unternehmen", "/company", "/our-company", "/our-team", "/team",
    "/wir", "/who-we-are", "/wie-zijn-wij",
    # Footer / location
    "/impressum-kontakt", "/legal-contact", "/company-info",
    "/anfahrt", "/standort", "/location", "/locations",
)


class CrawlProvider(Protocol):
    async def start_crawl(self, url: str, limit: int) -> dict[str, Any]: ...

    async def poll_crawl(self, crawl_id: str) -> CrawlPoll: ...

    async def scrape_one(self, url: str) -> RawPage | None: ...

    async def map_site(self, url: str) -> list[str]: ...


async def _noop_status(_message: str) -> None:
    return None


class CrawlService:
    """Site crawl + direct legal-page fetch, merged into one page corpus."""

    def __init__(
        self,
        provider: CrawlProvider,
        *,
        page_limit: int | None = None,
        time_budget: float | None = None,
        poll_interval: float | None = None,
        legal_batch_size: int | None = None,
        legal_paths: tuple[str, ...] = LEGAL_PATHS,
        map_site: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.page_limit = page_limit or settings.crawl_page_limit
        self.time_budget = settings.crawl_time_budget_seconds if time_budget is None else time_budget
        self.poll_interval = settings.crawl_poll_interval_seconds if poll_interval is None else poll_interval
        self.legal_batch_size = max(int(legal_batch_size or settings.legal_fetch_batch_size), 1)
        self.legal_paths = legal_paths
        self.map_site = map_site
        self._clock = clock
        self._sleep = sleep

    async def crawl(self, url: str, on_status: StatusCallback | None = None) -> CrawlResult:
        on_status = on_status or _noop_status
        crawled, direct, site_urls = await asyncio.gather(
            self._run_site_crawl(url, on_status),
            self._fetch_legal_pages(url, on_status),
            self._map_site_urls(url),
        )
        raw_pages = merge_pages(crawled, direct)
        logger.info(
            f"Crawl finished for {url}: {len(crawled)} crawled, {len(direct)} direct, {len(raw_pages)} merged"
        )
        return build_crawl_result(url, raw_pages, site_urls)

    async def _run_site_crawl(self, url: str, on_status: StatusCallback) -> list[RawPage]:
        await on_status("Starting website crawl...")
        try:
            started = await self.provider.start_crawl(url, self.page_limit)
        except Exception as exc:
            logger.warning(f"Crawl could not start for {url}: {exc}")
            return []
        if started.get("pages"):
            return list(started["pages"])
        crawl_id = started.get("id")
        if not crawl_id:
            logger.warning(f"Crawl provider returned no job id for {url}")
            return []

        deadline = self._clock() + self.time_budget
        partial: list[RawPage] = []
        while self._clock() < deadline:
            await self._sleep(self.poll_interval)
            try:
                poll = await self.provider.poll_crawl(crawl_id)
            except (CrawlProviderError, httpx.HTTPError, ValueError) as exc:
                logger.warning(f"Crawl poll failed for {crawl_id}: {exc}")
                continue
            if poll.status == "completed":
                return poll.pages or partial
            if poll.status in ("failed", "cancelled"):
                logger.warning(f"Crawl {crawl_id} ended with status {poll.status}; keeping {len(partial)} pages")
                break
            if poll.pages:
                partial = poll.pages
            await on_status(f"Crawling... {poll.completed}/{poll.total} pages")

        if partial:
            await on_status(f"Crawl time budget reached - proceeding with {len(partial)} pages")
        return partial

    async def _fetch_legal_pages(self, url: str, on_status: StatusCallback) -> list[RawPage]:
        await on_status("Fetching legal pages directly...")
        base = url.rstrip("/")
        if not base.startswith("http"):
            base = f"https://{base}"

        found: list[RawPage] = []
        for start in range(0, len(self.legal_paths), self.legal_batch_size):
            batch = self.legal_paths[start:start + self.legal_batch_size]
            results = await asyncio.gather(
                *(self.provider.scrape_one(base + path) for path in batch),
                return_exceptions=True,
            )
            for path, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.debug(f"Direct fetch of {path} failed: {result}")
                    continue
                if result is not None:
                    found.append(result)
            await on_status(f"Found {len(found)} legal pages so far...")
        return found

    async def _map_site_urls(self, url: str) -> list[str]:
        if not self.map_site:
            return []
        try:
            return await self.provider.map_site(url)
        except Exception as exc:
            logger.debug(f"Site map unavailable for {url}: {exc}")
            return []


def merge_pages(crawled: list[RawPage], direct: list[RawPage]) -> list[RawPage]:
    """Crawl copies win; direct fetches only fill URLs the crawl missed."""
    merged: list[RawPage] = []
    seen: set[str] = set()
    for page in [*crawled, *direct]:
        key = normalize_url(page.url)
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(page)
    return merged


def build_crawl_result(url: str, raw_pages: list[RawPage], site_urls: list[str] | None = None) -> CrawlResult:
    budgets = {
        "legal": settings.page_char_limit_legal,
        "contact": settings.page_char_limit_contact,
        "general": settings.page_char_limit_general,
    }
    pages: list[Page] = []
    for raw in raw_pages:
        page_type = classify_page(raw.url, raw.title)
        pages.append(
            Page(
                url=raw.url,
                title=raw.title or "Page",
                page_type=page_type,
                content=raw.markdown[: budgets[page_type]],
            )
        )
    # Stable sort: legal first, then contact, then general.
    order = {"legal": 0, "contact": 1, "general": 2}
    pages.sort(key=lambda page: order[page.page_type])

    contact, company = extract_contact_and_company(pages)
    translation = analyze_translation_structure(pages, raw_pages, site_urls or [], home_url=url)
    return CrawlResult(
        url=url,
        pages=pages,
        contact=contact,
        company=company,
        translation=translation,
        crawled_at=datetime.now(UTC).isoformat(),
    )
