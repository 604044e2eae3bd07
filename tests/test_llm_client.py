from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from siteaudit.errors import (
    CompletionError,
    CompletionRateLimited,
    CompletionServerError,
    CompletionTimeout,
    MalformedCompletion,
)
from siteaudit.llm_client import JSON_REMINDER, CompletionClient, strip_code_fences
from siteaudit.services.rate_limiter import TokenRateLimiter


def _response(content: str | None):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=7),
    )


class ScriptedOpenAI:
    """Mimics ``client.chat.completions.create`` and ``client.embeddings.create``."""

    def __init__(self, outcomes: list):
        self.outcomes = list(outcomes)
        self.requests: list[dict] = []
        self.embedding_requests: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.embeddings = SimpleNamespace(create=self._embed)

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return await outcome()
        return _response(outcome)

    async def _embed(self, **kwargs):
        self.embedding_requests.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])


def _client(openai_client, **kwargs) -> CompletionClient:
    limiter = TokenRateLimiter(min_interval=0)
    return CompletionClient(
        openai_client,
        limiter,
        default_model="test-model",
        embedding_model="test-embedding",
        embedding_dimensions=3,
        retry_delay=0,
        **kwargs,
    )


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("  plain text \n") == "plain text"


@pytest.mark.asyncio
async def test_complete_prepends_system_message_and_strips_fences():
    fake = ScriptedOpenAI(['```json\n{"ok": true}\n```'])
    client = _client(fake)

    text = await client.complete("Be precise.", [{"role": "user", "content": "hi"}], temperature=0.1)

    assert text == '{"ok": true}'
    request = fake.requests[0]
    assert request["model"] == "test-model"
    assert request["messages"][0] == {"role": "system", "content": "Be precise."}
    assert request["messages"][1] == {"role": "user", "content": "hi"}
    assert request["temperature"] == 0.1
    assert "response_format" not in request


@pytest.mark.asyncio
async def test_json_mode_appends_reminder_only_when_missing():
    fake = ScriptedOpenAI(["{}", "{}"])
    client = _client(fake)
    json_mode = {"type": "json_object"}

    await client.complete("Summarize.", [], response_format=json_mode)
    await client.complete("Return JSON only.", [], response_format=json_mode)

    assert fake.requests[0]["messages"][0]["content"].endswith(JSON_REMINDER)
    assert fake.requests[0]["response_format"] == json_mode
    assert fake.requests[1]["messages"][0]["content"] == "Return JSON only."


@pytest.mark.asyncio
async def test_transient_errors_are_retried():
    fake = ScriptedOpenAI([CompletionRateLimited("429"), CompletionServerError("503"), "done"])
    client = _client(fake)

    assert await client.complete("sys", [], retries=2) == "done"
    assert len(fake.requests) == 3


@pytest.mark.asyncio
async def test_retries_are_bounded():
    fake = ScriptedOpenAI([CompletionRateLimited("429"), CompletionRateLimited("429")])
    client = _client(fake)

    with pytest.raises(CompletionRateLimited):
        await client.complete("sys", [], retries=1)
    assert len(fake.requests) == 2


@pytest.mark.asyncio
async def test_default_retry_count_comes_from_client():
    fake = ScriptedOpenAI([CompletionRateLimited("429"), CompletionRateLimited("429"), "unused"])
    client = _client(fake, retries=1)

    with pytest.raises(CompletionRateLimited):
        await client.complete("sys", [])
    assert len(fake.requests) == 2


@pytest.mark.asyncio
async def test_non_transient_error_is_not_retried():
    fake = ScriptedOpenAI([CompletionError("HTTP 400: bad request"), "unused"])
    client = _client(fake)

    with pytest.raises(CompletionError):
        await client.complete("sys", [], retries=3)
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_slow_provider_raises_timeout():
    async def slow():
        await asyncio.sleep(1)
        return _response("late")

    fake = ScriptedOpenAI([slow])
    client = _client(fake, timeout=0.01)

    with pytest.raises(CompletionTimeout):
        await client.complete("sys", [], retries=0)


@pytest.mark.asyncio
async def test_empty_content_is_malformed():
    fake = ScriptedOpenAI(["   "])
    client = _client(fake)

    with pytest.raises(MalformedCompletion):
        await client.complete("sys", [], retries=2)
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_embed_flattens_newlines_and_requests_dimensions():
    fake = ScriptedOpenAI([])
    client = _client(fake)

    vector = await client.embed("line one\nline two")

    assert vector == [0.1, 0.2, 0.3]
    assert fake.embedding_requests == [
        {"model": "test-embedding", "input": "line one line two", "dimensions": 3}
    ]
