from __future__ import annotations

import asyncio
import hashlib
import json
from pathlib import Path
from typing import Any

import chromadb

from siteaudit.audit_core.models.interfaces import DocumentChunk, RetrievedChunk


def _collection_name(job_id: str) -> str:
    digest = hashlib.sha1(job_id.encode("utf-8")).hexdigest()[:16]
    return f"job_{digest}"


def _metadata_for_chunk(job_id: str, chunk: DocumentChunk) -> dict[str, Any]:
    # Chroma metadata values must be scalars.
    return {
        "job_id": job_id,
        "url": chunk.url,
        "metadata_json": json.dumps(chunk.metadata, ensure_ascii=False),
    }


class ChromaChunkStore:
    """Local persistent chunk store, one cosine-space collection per job."""

    def __init__(self, persist_dir: str):
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        self._client: Any | None = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> Any:
        async with self._client_lock:
            if self._client is None:
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            return self._client

    def _collection(self, client: Any, job_id: str) -> Any:
        return client.get_or_create_collection(
            name=_collection_name(job_id),
            metadata={"job_id": job_id, "hnsw:space": "cosine"},
        )

    async def insert_chunks(self, job_id: str, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0
        client = await self._get_client()

        def _sync_insert() -> int:
            collection = self._collection(client, job_id)
            offset = collection.count()
            collection.add(
                ids=[f"{job_id}:{offset + idx}" for idx in range(len(chunks))],
                documents=[chunk.content for chunk in chunks],
                metadatas=[_metadata_for_chunk(job_id, chunk) for chunk in chunks],
                embeddings=[chunk.embedding for chunk in chunks],
            )
            return len(chunks)

        return await asyncio.to_thread(_sync_insert)

    async def nearest_chunks(
        self, job_id: str, embedding: list[float], k: int, threshold: float
    ) -> list[RetrievedChunk]:
        client = await self._get_client()

        def _sync_query() -> list[RetrievedChunk]:
            collection = self._collection(client, job_id)
            if collection.count() == 0:
                return []
            result = collection.query(
                query_embeddings=[embedding],
                n_results=max(int(k), 1),
                include=["documents", "metadatas", "distances"],
            )
            docs = (result.get("documents") or [[]])[0]
            metas = (result.get("metadatas") or [[]])[0]
            distances = (result.get("distances") or [[]])[0]
            hits: list[RetrievedChunk] = []
            for idx, doc in enumerate(docs):
                similarity = 1.0 - float(distances[idx]) if idx < len(distances) else 0.0
                if not isinstance(doc, str) or similarity <= threshold:
                    continue
                meta = metas[idx] if idx < len(metas) and isinstance(metas[idx], dict) else {}
                hits.append(
                    RetrievedChunk(
                        url=str(meta.get("url") or ""),
                        content=doc,
                        similarity=similarity,
                        metadata=json.loads(meta.get("metadata_json") or "{}"),
                    )
                )
            return hits

        return await asyncio.to_thread(_sync_query)

    async def fetch_chunks(self, job_id: str) -> list[DocumentChunk]:
        client = await self._get_client()

        def _sync_fetch() -> list[DocumentChunk]:
            collection = self._collection(client, job_id)
            result = collection.get(include=["documents", "metadatas", "embeddings"])
            docs = result.get("documents") or []
            metas = result.get("metadatas") or []
            vectors = result.get("embeddings")
            if vectors is None:
                vectors = []
            chunks: list[DocumentChunk] = []
            for idx, doc in enumerate(docs):
                meta = metas[idx] if idx < len(metas) and isinstance(metas[idx], dict) else {}
                vector = vectors[idx] if idx < len(vectors) else []
                chunks.append(
                    DocumentChunk(
                        url=str(meta.get("url") or ""),
                        content=doc,
                        embedding=[float(v) for v in vector],
                        metadata=json.loads(meta.get("metadata_json") or "{}"),
                    )
                )
            return chunks

        return await asyncio.to_thread(_sync_fetch)

    async def count_chunks(self, job_id: str) -> int:
        client = await self._get_client()
        return await asyncio.to_thread(lambda: self._collection(client, job_id).count())
