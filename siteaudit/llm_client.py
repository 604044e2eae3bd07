"""OpenAI-compatible completion + embedding client with shared rate limiting."""
from __future__ import annotations

import asyncio
import re
import time
from typing import Any

from siteaudit.config import settings
from siteaudit.errors import (
    CompletionError,
    CompletionRateLimited,
    CompletionServerError,
    CompletionTimeout,
    MalformedCompletion,
)
from siteaudit.services.logger import log_llm_call, logger
from siteaudit.services.rate_limiter import TokenRateLimiter

JSON_REMINDER = "IMPORTANT: You must output valid JSON."

_FENCE_OPEN = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Drop a surrounding ```json ... ``` fence, then trim."""
    cleaned = _FENCE_OPEN.sub("", text or "")
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def _classify_error(exc: BaseException) -> CompletionError:
    import openai

    if isinstance(exc, CompletionError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError)):
        return CompletionTimeout(str(exc) or "completion timed out")
    if isinstance(exc, openai.RateLimitError):
        return CompletionRateLimited(str(exc))
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 429:
            return CompletionRateLimited(str(exc))
        if exc.status_code >= 500:
            return CompletionServerError(str(exc))
        return CompletionError(f"HTTP {exc.status_code}: {exc}")
    if isinstance(exc, openai.APIConnectionError):
        return CompletionServerError(str(exc))
    return CompletionError(str(exc))


class CompletionClient:
    def __init__(
        self,
        openai_client: Any,
        rate_limiter: TokenRateLimiter,
        *,
        default_model: str | None = None,
        embedding_model: str | None = None,
        embedding_dimensions: int | None = None,
        timeout: float | None = None,
        retry_delay: float | None = None,
        retries: int | None = None,
    ):
        self._client = openai_client
        self.rate_limiter = rate_limiter
        self.default_model = default_model or settings.default_model
        self.embedding_model = embedding_model or settings.embedding_model
        self.embedding_dimensions = embedding_dimensions or settings.embedding_dimensions
        self.timeout = settings.llm_timeout_seconds if timeout is None else timeout
        self.retry_delay = settings.llm_retry_delay_seconds if retry_delay is None else retry_delay
        self.retries = settings.llm_retries if retries is None else retries

    async def complete(
        self,
        system_instruction: str,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        response_format: dict[str, str] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        retries: int | None = None,
        caller: str = "agent",
    ) -> str:
        model = model or self.default_model
        system = system_instruction
        if response_format and response_format.get("type") == "json_object" and "JSON" not in system:
            system = f"{system}\n\n{JSON_REMINDER}"

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "system", "content": system}, *messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            kwargs["response_format"] = response_format

        attempts_left = max(int(self.retries if retries is None else retries), 0)
        while True:
            try:
                return await self._complete_once(kwargs, caller)
            except CompletionError as exc:
                if not exc.transient or attempts_left <= 0:
                    raise
                attempts_left -= 1
                logger.warning(
                    f"{caller}: {type(exc).__name__} from completion provider, retrying in {self.retry_delay}s "
                    f"({attempts_left} retries left)"
                )
                await asyncio.sleep(self.retry_delay)

    async def _complete_once(self, kwargs: dict[str, Any], caller: str) -> str:
        await self.rate_limiter.acquire()
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self.timeout,
            )
        except Exception as exc:
            error = _classify_error(exc)
            log_llm_call(
                model=kwargs["model"],
                caller=caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=f"{type(error).__name__}: {error}",
            )
            raise error from exc

        usage = getattr(response, "usage", None)
        log_llm_call(
            model=kwargs["model"],
            caller=caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        choices = getattr(response, "choices", None) or []
        content = getattr(choices[0].message, "content", None) if choices else None
        if not content or not content.strip():
            raise MalformedCompletion("completion provider returned empty content")
        return strip_code_fences(content)

    async def embed(self, text: str, *, retries: int = 1) -> list[float]:
        cleaned = (text or "").replace("\n", " ")
        attempts_left = max(int(retries), 0)
        while True:
            try:
                return await self._embed_once(cleaned)
            except CompletionError as exc:
                if not exc.transient or attempts_left <= 0:
                    raise
                attempts_left -= 1
                await asyncio.sleep(self.retry_delay)

    async def _embed_once(self, text: str) -> list[float]:
        await self.rate_limiter.acquire(max(len(text) // 4, 1))
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.embeddings.create(
                    model=self.embedding_model,
                    input=text,
                    dimensions=self.embedding_dimensions,
                ),
                timeout=self.timeout,
            )
        except Exception as exc:
            error = _classify_error(exc)
            log_llm_call(
                model=self.embedding_model,
                caller="embedding",
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=f"{type(error).__name__}: {error}",
            )
            raise error from exc

        data = getattr(response, "data", None) or []
        if not data:
            raise MalformedCompletion("embedding provider returned no vectors")
        return [float(v) for v in data[0].embedding]


def get_openai_client() -> Any:
    from openai import AsyncOpenAI

    base_url = settings.openai_base_url.strip() or "https://api.openai.com/v1"
    # Retries are owned by CompletionClient so the rate limiter sees every attempt.
    return AsyncOpenAI(api_key=settings.openai_api_key, base_url=base_url, max_retries=0)
