"""Duck-typed collaborators shared by the pipeline tests."""
from __future__ import annotations

import json
from typing import Any, Callable

from siteaudit.audit_core.models.interfaces import CrawlPoll, RawPage
from siteaudit.errors import CompletionError

VOCAB = (
    "impressum", "privacy", "datenschutz", "cookie", "terms", "agb", "widerruf", "withdrawal",
    "contact", "email", "translation", "language", "shipping", "company", "vat",
)


def keyword_vector(text: str) -> list[float]:
    lowered = text.lower()
    return [float(lowered.count(word)) for word in VOCAB] + [0.01]


class FakeCompletion:
    """Stands in for CompletionClient: scripted completions and bag-of-words embeddings."""

    def __init__(self, responder: Callable[..., str] | None = None):
        self.responder = responder or (lambda system, messages, **kwargs: "ok")
        self.calls: list[dict[str, Any]] = []
        self.embed_calls: list[str] = []

    async def complete(self, system_instruction: str, messages: list[dict[str, str]], **kwargs: Any) -> str:
        self.calls.append({"system": system_instruction, "messages": messages, **kwargs})
        return self.responder(system_instruction, messages, **kwargs)

    async def embed(self, text: str, **_kwargs: Any) -> list[float]:
        self.embed_calls.append(text)
        return keyword_vector(text)


class FakeCrawlProvider:
    def __init__(
        self,
        *,
        crawl_pages: list[RawPage] | None = None,
        polls: list[CrawlPoll] | None = None,
        direct: dict[str, RawPage] | None = None,
        site_urls: list[str] | None = None,
    ):
        self.crawl_pages = crawl_pages
        self.polls = list(polls or [])
        self.direct = direct or {}
        self.site_urls = site_urls or []
        self.start_calls = 0
        self.poll_calls = 0
        self.scraped: list[str] = []

    async def start_crawl(self, url: str, limit: int) -> dict[str, Any]:
        self.start_calls += 1
        if self.crawl_pages is not None:
            return {"id": None, "status": "completed", "pages": self.crawl_pages}
        return {"id": "crawl-1", "status": "scraping"}

    async def poll_crawl(self, crawl_id: str) -> CrawlPoll:
        self.poll_calls += 1
        if len(self.polls) > 1:
            return self.polls.pop(0)
        return self.polls[0]

    async def scrape_one(self, url: str) -> RawPage | None:
        self.scraped.append(url)
        return self.direct.get(url)

    async def map_site(self, url: str) -> list[str]:
        return self.site_urls


class FakeClock:
    """Monotonic clock advanced only by the paired ``sleep``."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def report_json(sections: list[dict[str, Any]], **extra: Any) -> str:
    payload = {
        "overview": "model overview",
        "companyInfo": {"name": "Example GmbH"},
        "sections": sections,
        "translationAnalysis": {"status": "Unknown", "reasoning": "", "evidence": ""},
        "conclusion": "model conclusion",
        "actionList": ["model action"],
    }
    payload.update(extra)
    return json.dumps(payload)


def failing(exc: Exception) -> Callable[..., str]:
    def _raise(*_args: Any, **_kwargs: Any) -> str:
        raise exc

    return _raise


def unavailable_completion() -> FakeCompletion:
    return FakeCompletion(failing(CompletionError("provider down")))
