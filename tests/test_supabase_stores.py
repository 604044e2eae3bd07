from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from siteaudit.audit_core.models.interfaces import DocumentChunk
from siteaudit.services.supabase import (
    SupabaseChunkStore,
    SupabaseJobRepository,
    _coerce_json_object,
    _coerce_vector,
)


def _result(data=None, count=None) -> SimpleNamespace:
    return SimpleNamespace(data=data, count=count)


def test_coerce_helpers():
    assert _coerce_vector("[0.5, 1, 2]") == [0.5, 1.0, 2.0]
    assert _coerce_vector("not json") == []
    assert _coerce_vector(None) == []
    assert _coerce_json_object('{"a": 1}') == {"a": 1}
    assert _coerce_json_object("[1, 2]") == {}
    assert _coerce_json_object(None) == {}


@pytest.mark.asyncio
async def test_nearest_chunks_calls_match_rpc_and_filters_threshold():
    db = MagicMock()
    db.rpc.return_value.execute.return_value = _result(
        [
            {"url": "https://a.example/agb", "content": "AGB", "similarity": 0.91, "metadata": '{"title": "AGB"}'},
            {"url": "https://a.example/", "content": "Home", "similarity": 0.5, "metadata": None},
        ]
    )

    hits = await SupabaseChunkStore(db).nearest_chunks("job-1", [0.1, 0.2], 8, 0.5)

    db.rpc.assert_called_once_with(
        "match_document_chunks",
        {"query_embedding": [0.1, 0.2], "match_threshold": 0.5, "match_count": 8, "filter_job_id": "job-1"},
    )
    assert [hit.url for hit in hits] == ["https://a.example/agb"]
    assert hits[0].metadata == {"title": "AGB"}


@pytest.mark.asyncio
async def test_insert_chunks_batches_rows():
    db = MagicMock()
    store = SupabaseChunkStore(db, insert_batch_size=2)
    chunks = [DocumentChunk(url=f"u{i}", content=f"c{i}", embedding=[1.0]) for i in range(5)]

    assert await store.insert_chunks("job-1", chunks) == 5

    batches = [call.args[0] for call in db.table.return_value.insert.call_args_list]
    assert [len(batch) for batch in batches] == [2, 2, 1]
    assert batches[0][0]["job_id"] == "job-1"


@pytest.mark.asyncio
async def test_fetch_and_count_chunks():
    db = MagicMock()
    query = db.table.return_value.select.return_value.eq.return_value
    query.order.return_value.range.return_value.execute.return_value = _result(
        [{"url": "u", "content": "c", "metadata": {}, "embedding": "[1,0]"}]
    )
    query.limit.return_value.execute.return_value = _result([], count=7)
    store = SupabaseChunkStore(db)

    chunks = await store.fetch_chunks("job-1")
    assert chunks[0].embedding == [1.0, 0.0]
    assert await store.count_chunks("job-1") == 7


@pytest.mark.asyncio
async def test_fetch_chunks_pages_past_the_row_cap():
    db = MagicMock()
    paged = db.table.return_value.select.return_value.eq.return_value.order.return_value.range
    paged.return_value.execute.side_effect = [
        _result([{"url": "u1", "content": "a"}, {"url": "u2", "content": "b"}]),
        _result([{"url": "u3", "content": "c"}]),
    ]

    chunks = await SupabaseChunkStore(db, page_size=2).fetch_chunks("job-1")

    assert [chunk.content for chunk in chunks] == ["a", "b", "c"]
    assert [call.args for call in paged.call_args_list] == [(0, 1), (2, 3)]


@pytest.mark.asyncio
async def test_find_reusable_job_skips_excluded_and_empty_crawls():
    db = MagicMock()
    chain = (
        db.table.return_value.select.return_value.eq.return_value.eq.return_value
        .not_.is_.return_value.order.return_value.limit.return_value
    )
    chain.execute.return_value = _result(
        [
            {"id": "job-new", "raw_data": {"crawl": {"pages": []}}},
            {"id": "job-empty", "raw_data": "{}"},
            {"id": "job-old", "raw_data": '{"crawl": {"url": "https://a.example"}}'},
        ]
    )

    job = await SupabaseJobRepository(db).find_reusable_job("https://a.example", exclude_id="job-new")

    assert job["id"] == "job-old"
    assert job["raw_data"]["crawl"]["url"] == "https://a.example"
