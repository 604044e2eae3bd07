from __future__ import annotations

import math
from typing import Protocol

from siteaudit.audit_core.models.interfaces import DocumentChunk, RetrievedChunk


class ChunkStore(Protocol):
    async def insert_chunks(self, job_id: str, chunks: list[DocumentChunk]) -> int: ...

    async def nearest_chunks(
        self, job_id: str, embedding: list[float], k: int, threshold: float
    ) -> list[RetrievedChunk]: ...

    async def fetch_chunks(self, job_id: str) -> list[DocumentChunk]: ...

    async def count_chunks(self, job_id: str) -> int: ...


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryChunkStore:
    """Process-local store with brute-force cosine search."""

    def __init__(self) -> None:
        self._chunks: dict[str, list[DocumentChunk]] = {}

    async def insert_chunks(self, job_id: str, chunks: list[DocumentChunk]) -> int:
        self._chunks.setdefault(job_id, []).extend(chunks)
        return len(chunks)

    async def nearest_chunks(
        self, job_id: str, embedding: list[float], k: int, threshold: float
    ) -> list[RetrievedChunk]:
        scored: list[RetrievedChunk] = []
        for chunk in self._chunks.get(job_id, []):
            similarity = cosine_similarity(embedding, chunk.embedding)
            if similarity > threshold:
                scored.append(
                    RetrievedChunk(
                        url=chunk.url,
                        content=chunk.content,
                        similarity=similarity,
                        metadata=dict(chunk.metadata),
                    )
                )
        scored.sort(key=lambda hit: hit.similarity, reverse=True)
        return scored[: max(int(k), 0)]

    async def fetch_chunks(self, job_id: str) -> list[DocumentChunk]:
        return list(self._chunks.get(job_id, []))

    async def count_chunks(self, job_id: str) -> int:
        return len(self._chunks.get(job_id, []))
