from __future__ import annotations

from siteaudit.audit_core.ingest.service import Embedder
from siteaudit.audit_core.models.interfaces import RetrievedChunk
from siteaudit.config import settings
from siteaudit.services.chunk_store import ChunkStore


class Retriever:
    def __init__(
        self,
        embedder: Embedder,
        store: ChunkStore,
        *,
        threshold: float | None = None,
        default_k: int | None = None,
    ):
        self.embedder = embedder
        self.store = store
        self.threshold = settings.retrieval_match_threshold if threshold is None else threshold
        self.default_k = default_k or settings.retrieval_match_count

    async def retrieve(self, job_id: str, query: str, k: int | None = None) -> list[RetrievedChunk]:
        """Top-k chunks of this job above the similarity threshold. Empty when none qualify."""
        if not query.strip():
            return []
        embedding = await self.embedder.embed(query)
        return await self.store.nearest_chunks(job_id, embedding, k or self.default_k, self.threshold)


def format_chunks(chunks: list[RetrievedChunk]) -> str:
    return "\n\n".join(f"[SOURCE: {chunk.url}]\n{chunk.content}\n[END SOURCE]" for chunk in chunks)
