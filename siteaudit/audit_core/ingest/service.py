from __future__ import annotations

import re
from typing import Awaitable, Callable, Protocol

from siteaudit.audit_core.models.interfaces import DocumentChunk, Page
from siteaudit.config import settings
from siteaudit.services.chunk_store import ChunkStore
from siteaudit.services.logger import logger

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def chunk_text(text: str, max_chars: int = 1000) -> list[str]:
    """Pack paragraphs into chunks of at most ``max_chars``.

    Paragraphs longer than the limit are broken on sentence boundaries; a
    single sentence longer than the limit is hard-split.
    """
    if not text or not text.strip():
        return []
    max_chars = max(int(max_chars), 1)
    chunks: list[str] = []
    current = ""

    def flush() -> None:
        nonlocal current
        if current.strip():
            chunks.append(current.strip())
        current = ""

    for paragraph in _PARAGRAPH_SPLIT.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) > max_chars:
            flush()
            for sentence in _SENTENCE_SPLIT.findall(paragraph):
                sentence = sentence.strip()
                if not sentence:
                    continue
                while len(sentence) > max_chars:
                    flush()
                    chunks.append(sentence[:max_chars].strip())
                    sentence = sentence[max_chars:].strip()
                candidate = f"{current} {sentence}" if current else sentence
                if len(candidate) > max_chars:
                    flush()
                    current = sentence
                else:
                    current = candidate
            flush()
            continue

        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) > max_chars:
            flush()
            current = paragraph
        else:
            current = candidate
    flush()
    return chunks


class KnowledgeBase:
    """Builds and copies the per-job vector index."""

    def __init__(self, embedder: Embedder, store: ChunkStore, *, max_chunk_chars: int | None = None):
        self.embedder = embedder
        self.store = store
        self.max_chunk_chars = max_chunk_chars or settings.chunk_max_chars

    async def ingest(
        self,
        job_id: str,
        pages: list[Page],
        on_status: Callable[[str], Awaitable[None]] | None = None,
    ) -> int:
        stored = 0
        skipped = 0
        for index, page in enumerate(pages, start=1):
            batch: list[DocumentChunk] = []
            for piece in chunk_text(page.content, self.max_chunk_chars):
                try:
                    embedding = await self.embedder.embed(piece)
                except Exception as exc:
                    skipped += 1
                    logger.warning(f"Embedding failed for chunk of {page.url}, skipping: {exc}")
                    continue
                batch.append(
                    DocumentChunk(
                        url=page.url,
                        content=piece,
                        embedding=embedding,
                        metadata={"title": page.title, "pageType": page.page_type},
                    )
                )
            if batch:
                stored += await self.store.insert_chunks(job_id, batch)
            if on_status is not None:
                await on_status(f"RAG: Indexed {index}/{len(pages)} pages ({stored} chunks)")
        logger.info(f"Knowledge base for job {job_id}: {stored} chunks stored, {skipped} skipped")
        return stored

    async def copy_chunks(self, source_job_id: str, target_job_id: str) -> int:
        chunks = await self.store.fetch_chunks(source_job_id)
        if not chunks:
            return 0
        copied = await self.store.insert_chunks(target_job_id, chunks)
        logger.info(f"Copied {copied} chunks from job {source_job_id} to {target_job_id}")
        return copied

    async def count(self, job_id: str) -> int:
        return await self.store.count_chunks(job_id)
