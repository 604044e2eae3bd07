from __future__ import annotations

import pytest

from fakes import FakeClock, FakeCrawlProvider
from siteaudit.audit_core.crawl.service import CrawlService, build_crawl_result, merge_pages
from siteaudit.audit_core.models.interfaces import CrawlPoll, RawPage
from siteaudit.errors import CrawlProviderError


def _service(provider, clock: FakeClock | None = None, **kwargs) -> CrawlService:
    clock = clock or FakeClock()
    kwargs.setdefault("legal_paths", ("/impressum", "/datenschutz"))
    return CrawlService(
        provider,
        page_limit=50,
        time_budget=45.0,
        poll_interval=4.0,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def test_merge_prefers_crawled_copy_and_dedupes_normalized_urls():
    crawled = [
        RawPage(url="https://www.shop.example/impressum/", markdown="crawled imprint"),
        RawPage(url="https://shop.example/", markdown="home"),
    ]
    direct = [
        RawPage(url="https://shop.example/impressum", markdown="direct imprint"),
        RawPage(url="https://shop.example/datenschutz", markdown="direct privacy"),
    ]

    merged = merge_pages(crawled, direct)

    assert [page.markdown for page in merged] == ["crawled imprint", "home", "direct privacy"]


def test_build_crawl_result_truncates_by_type_and_orders_legal_first():
    raw = [
        RawPage(url="https://shop.example/", markdown="g" * 12_000, title="Home"),
        RawPage(url="https://shop.example/kontakt", markdown="c" * 26_000, title="Kontakt"),
        RawPage(url="https://shop.example/impressum", markdown="l" * 31_000, title="Impressum"),
    ]

    result = build_crawl_result("https://shop.example", raw)

    assert [page.page_type for page in result.pages] == ["legal", "contact", "general"]
    assert [len(page.content) for page in result.pages] == [30_000, 25_000, 10_000]
    assert result.total_pages == 3
    assert result.legal_pages_found == 1
    assert result.contact_pages_found == 1
    assert result.crawled_at


@pytest.mark.asyncio
async def test_completed_crawl_merges_with_direct_legal_fetch():
    provider = FakeCrawlProvider(
        crawl_pages=[RawPage(url="https://shop.example/", markdown="Welcome", title="Home")],
        direct={
            "https://shop.example/impressum": RawPage(
                url="https://shop.example/impressum", markdown="Impressum Example GmbH", title="Impressum"
            )
        },
    )
    service = _service(provider)

    result = await service.crawl("https://shop.example")

    assert provider.poll_calls == 0
    assert provider.scraped == ["https://shop.example/impressum", "https://shop.example/datenschutz"]
    assert [page.url for page in result.pages] == ["https://shop.example/impressum", "https://shop.example/"]


@pytest.mark.asyncio
async def test_time_budget_keeps_partial_pages():
    partial = [RawPage(url="https://slow.example/about", markdown="About us", title="About")]
    provider = FakeCrawlProvider(polls=[CrawlPoll(status="scraping", pages=partial, completed=1, total=40)])
    clock = FakeClock()
    statuses: list[str] = []

    async def on_status(message: str) -> None:
        statuses.append(message)

    result = await _service(provider, clock, map_site=False).crawl("https://slow.example", on_status)

    assert provider.poll_calls == 12
    assert [page.url for page in result.pages] == ["https://slow.example/about"]
    assert "Crawling... 1/40 pages" in statuses
    assert "Crawl time budget reached - proceeding with 1 pages" in statuses


@pytest.mark.asyncio
async def test_failed_crawl_falls_back_to_partial_and_direct_pages():
    partial = [RawPage(url="https://shop.example/", markdown="home")]
    provider = FakeCrawlProvider(
        polls=[CrawlPoll(status="scraping", pages=partial), CrawlPoll(status="failed")],
        direct={"https://shop.example/datenschutz": RawPage(url="https://shop.example/datenschutz", markdown="dsgvo")},
    )

    result = await _service(provider).crawl("https://shop.example")

    assert provider.poll_calls == 2
    assert sorted(page.url for page in result.pages) == [
        "https://shop.example/",
        "https://shop.example/datenschutz",
    ]


class FlakyPollProvider(FakeCrawlProvider):
    async def poll_crawl(self, crawl_id: str) -> CrawlPoll:
        self.poll_calls += 1
        if self.poll_calls == 1:
            raise CrawlProviderError("Firecrawl crawl status returned HTTP 502")
        return CrawlPoll(status="completed", pages=[RawPage(url="https://shop.example/", markdown="home")])


@pytest.mark.asyncio
async def test_poll_errors_do_not_abort_the_crawl():
    provider = FlakyPollProvider()

    result = await _service(provider).crawl("https://shop.example")

    assert provider.poll_calls == 2
    assert [page.url for page in result.pages] == ["https://shop.example/"]


@pytest.mark.asyncio
async def test_legal_fetch_runs_in_batches():
    paths = tuple(f"/legal-{i}" for i in range(7))
    provider = FakeCrawlProvider(crawl_pages=[])
    statuses: list[str] = []

    async def on_status(message: str) -> None:
        statuses.append(message)

    await _service(provider, legal_paths=paths, legal_batch_size=5).crawl("shop.example/", on_status)

    assert provider.scraped[0] == "https://shop.example/legal-0"
    assert len(provider.scraped) == 7
    assert statuses.count("Found 0 legal pages so far...") == 2
