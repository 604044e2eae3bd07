"""Process-wide wiring: one rate limiter, broadcaster and audit manager per process."""
from __future__ import annotations

from functools import lru_cache

from siteaudit.agents.compiler import ReportCompiler
from siteaudit.agents.coordinator import AnalysisCoordinator
from siteaudit.audit_core.crawl.service import CrawlService
from siteaudit.audit_core.ingest.service import KnowledgeBase
from siteaudit.audit_core.retrieval.service import Retriever
from siteaudit.config import settings
from siteaudit.llm_client import CompletionClient, get_openai_client
from siteaudit.services.audit_jobs import AuditJobManager
from siteaudit.services.chunk_store import ChunkStore, InMemoryChunkStore
from siteaudit.services.concurrency import AuditConcurrencyLimiter
from siteaudit.services.job_store import (
    InMemoryJobRepository,
    InMemoryKeywordResultStore,
    JobRepository,
    KeywordResultStore,
)
from siteaudit.services.keyword_search import KeywordSearchPipeline
from siteaudit.services.logger import logger
from siteaudit.services.rate_limiter import TokenRateLimiter
from siteaudit.services.status_channel import StatusBroadcaster
from siteaudit.tools.firecrawl import FirecrawlClient


@lru_cache(maxsize=1)
def get_rate_limiter() -> TokenRateLimiter:
    return TokenRateLimiter(
        settings.rate_limit_tokens_per_minute,
        threshold=settings.rate_limit_threshold,
        min_interval=settings.rate_limit_min_interval_ms / 1000,
        estimated_tokens=settings.rate_limit_estimated_tokens,
    )


@lru_cache(maxsize=1)
def get_completion_client() -> CompletionClient:
    return CompletionClient(get_openai_client(), get_rate_limiter())


@lru_cache(maxsize=1)
def get_broadcaster() -> StatusBroadcaster:
    return StatusBroadcaster()


@lru_cache(maxsize=1)
def get_limiter() -> AuditConcurrencyLimiter:
    return AuditConcurrencyLimiter(settings.max_concurrent_audits)


@lru_cache(maxsize=1)
def get_firecrawl() -> FirecrawlClient:
    return FirecrawlClient()


@lru_cache(maxsize=1)
def get_job_repository() -> JobRepository:
    backend = settings.job_store_backend.strip().lower()
    if backend == "memory":
        logger.warning("Using in-memory job store; jobs are lost on restart")
        return InMemoryJobRepository()
    if backend != "supabase":
        raise ValueError(f"Unknown job store backend: {settings.job_store_backend}")
    from siteaudit.services.supabase import SupabaseJobRepository

    return SupabaseJobRepository()


@lru_cache(maxsize=1)
def get_chunk_store() -> ChunkStore:
    backend = settings.chunk_store_backend.strip().lower()
    if backend == "memory":
        return InMemoryChunkStore()
    if backend == "chromadb":
        from siteaudit.services.chunk_store_chroma import ChromaChunkStore

        return ChromaChunkStore(settings.chroma_persist_dir)
    if backend != "supabase":
        raise ValueError(f"Unknown chunk store backend: {settings.chunk_store_backend}")
    from siteaudit.services.supabase import SupabaseChunkStore

    return SupabaseChunkStore()


@lru_cache(maxsize=1)
def get_keyword_store() -> KeywordResultStore:
    if settings.job_store_backend.strip().lower() == "memory":
        return InMemoryKeywordResultStore()
    from siteaudit.services.supabase import SupabaseKeywordResultStore

    return SupabaseKeywordResultStore()


@lru_cache(maxsize=1)
def get_audit_manager() -> AuditJobManager:
    completion = get_completion_client()
    store = get_chunk_store()
    return AuditJobManager(
        jobs=get_job_repository(),
        crawler=CrawlService(get_firecrawl()),
        knowledge_base=KnowledgeBase(completion, store),
        coordinator=AnalysisCoordinator(completion, Retriever(completion, store)),
        compiler=ReportCompiler(completion),
        broadcaster=get_broadcaster(),
        limiter=get_limiter(),
        preflight=settings.missing_provider_keys,
    )


@lru_cache(maxsize=1)
def get_keyword_pipeline() -> KeywordSearchPipeline:
    return KeywordSearchPipeline(
        get_firecrawl(),
        get_completion_client(),
        get_keyword_store(),
        get_broadcaster(),
    )
