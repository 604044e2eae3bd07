from __future__ import annotations

import json

import pytest

from fakes import FakeCompletion, failing
from siteaudit.errors import AuditSetupError, CompletionTimeout, CrawlProviderError
from siteaudit.services import streaming
from siteaudit.services.job_store import InMemoryKeywordResultStore
from siteaudit.services.keyword_search import KeywordSearchPipeline, parse_extraction
from siteaudit.services.status_channel import StatusBroadcaster

RAW_RESULTS = [
    {"url": "https://shoes-gmbh.example", "title": "Shoes GmbH - Handmade shoes", "description": "Shoe maker",
     "markdown": "# Shoes\n" + "long body " * 500},
    {"url": "https://directory.example/shoes", "title": "Top 10 shoe shops", "description": "A listing"},
    {"title": "no url, ignored"},
]


class FakeSearch:
    def __init__(self, results=None, error: Exception | None = None):
        self.results = RAW_RESULTS if results is None else results
        self.error = error
        self.queries: list[tuple[str, int]] = []

    async def search(self, query: str, limit: int = 10):
        self.queries.append((query, limit))
        if self.error:
            raise self.error
        return self.results


def _extraction(*_args, **_kwargs) -> str:
    return json.dumps(
        {
            "results": [
                {"url": "https://shoes-gmbh.example", "company_name": "Shoes GmbH",
                 "company_description": "Makes handmade shoes."},
                {"url": "https://SHOES-GMBH.example", "company_name": "Duplicate"},
                {"company_name": "No website"},
            ]
        }
    )


def _pipeline(search, completion, store=None, broadcaster=None) -> KeywordSearchPipeline:
    return KeywordSearchPipeline(
        search,
        completion,
        store or InMemoryKeywordResultStore(),
        broadcaster or StatusBroadcaster(),
        limit=5,
        model="keyword-model",
    )


@pytest.mark.asyncio
async def test_search_extracts_companies_and_stores_rows():
    store = InMemoryKeywordResultStore()
    broadcaster = StatusBroadcaster()
    subscription = broadcaster.subscribe(streaming.search_channel("s-1"))
    completion = FakeCompletion(_extraction)
    search = FakeSearch()

    rows = await _pipeline(search, completion, store, broadcaster).run(
        "handmade shoes berlin", "user-1", search_id="s-1", creator_name="Ada"
    )

    assert search.queries == [("handmade shoes berlin", 5)]
    assert [row["website"] for row in rows] == ["https://shoes-gmbh.example"]
    assert rows[0]["company_name"] == "Shoes GmbH"
    assert rows[0]["analyzed"] is False
    assert rows[0]["creator_name"] == "Ada"
    assert store.rows[0]["search_query"] == "handmade shoes berlin"

    call = completion.calls[0]
    assert call["model"] == "keyword-model"
    assert call["response_format"] == {"type": "json_object"}
    assert "long body" not in call["messages"][0]["content"]

    events = [event async for event in subscription]
    assert events[0].message == "Searching the web for matching companies..."
    assert events[-1].payload() == {"message": "Search complete!", "status": "completed", "id": "s-1", "count": 1}


@pytest.mark.asyncio
async def test_extraction_failure_falls_back_to_raw_results():
    completion = FakeCompletion(failing(CompletionTimeout("slow")))

    rows = await _pipeline(FakeSearch(), completion).run("shoes", "user-1")

    assert [row["website"] for row in rows] == ["https://shoes-gmbh.example", "https://directory.example/shoes"]
    assert rows[0]["company_name"] == "Shoes GmbH - Handmade shoes"


@pytest.mark.asyncio
async def test_empty_search_stores_nothing():
    store = InMemoryKeywordResultStore()
    completion = FakeCompletion()

    rows = await _pipeline(FakeSearch(results=[]), completion, store).run("nothing", "user-1")

    assert rows == []
    assert store.rows == []
    assert completion.calls == []


@pytest.mark.asyncio
async def test_provider_error_publishes_failure_and_propagates():
    broadcaster = StatusBroadcaster()
    subscription = broadcaster.subscribe(streaming.search_channel("s-2"))
    search = FakeSearch(error=CrawlProviderError("Firecrawl /v1/search returned HTTP 402"))

    with pytest.raises(CrawlProviderError):
        await _pipeline(search, FakeCompletion(), broadcaster=broadcaster).run("shoes", "user-1", search_id="s-2")

    events = [event async for event in subscription]
    assert events[-1].status.value == "failed"
    assert events[-1].message.startswith("Search failed: Firecrawl")


@pytest.mark.asyncio
async def test_blank_query_is_rejected():
    with pytest.raises(AuditSetupError):
        await _pipeline(FakeSearch(), FakeCompletion()).run("  ", "user-1")


def test_parse_extraction_accepts_bare_list_and_rejects_garbage():
    assert [r.url for r in parse_extraction('[{"url": "https://a.example"}]')] == ["https://a.example"]
    assert parse_extraction("not json") == []
    assert parse_extraction('{"results": "nope"}') == []
