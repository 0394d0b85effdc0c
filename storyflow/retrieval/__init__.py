"""Project document retrieval used by the clarification step."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import RetrievalConfig
from .base import Embedder, SearchHit, VectorIndex
from .chunking import DEFAULT_CHUNK_SIZE, chunk_text
from .embeddings import HttpEmbedder
from .memory import InMemoryVectorIndex, cosine_similarity

logger = logging.getLogger(__name__)


class DocumentRetriever:
    """Embeds a query and returns the closest project document chunks."""

    def __init__(self, embedder: Embedder, index: VectorIndex, top_k: int = 3) -> None:
        self.embedder = embedder
        self.index = index
        self.top_k = top_k

    async def add_document(
        self, content: str, project_id: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        vector = await self.embedder.embed(content)
        await self.index.add(content, vector, {**(metadata or {}), "project_id": project_id})

    async def ingest(
        self,
        content: str,
        project_id: str,
        document_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """Chunk a document, embed every chunk and index it for ``project_id``.

        Returns the number of chunks stored.
        """
        chunks = chunk_text(content, chunk_size)
        for position, chunk in enumerate(chunks):
            await self.add_document(
                chunk,
                project_id,
                {**(metadata or {}), "document_id": document_id, "chunk_index": position},
            )
        logger.info(
            f"Indexed {len(chunks)} chunks of document {document_id} for project {project_id}"
        )
        return len(chunks)

    async def search(
        self, query: str, project_id: Optional[str] = None, k: Optional[int] = None
    ) -> List[SearchHit]:
        vector = await self.embedder.embed(query)
        filter = {"project_id": project_id} if project_id else None
        hits = await self.index.search(vector, k or self.top_k, filter)
        logger.debug(f"Retrieved {len(hits)} document chunks for project {project_id}")
        return hits


def build_retriever(
    config: RetrievalConfig, database_url: Optional[str] = None
) -> Optional[DocumentRetriever]:
    """Return a retriever when retrieval is enabled and an API key is set."""

    if not config.enabled:
        return None
    if not config.api_key:
        logger.warning("Retrieval enabled but no embedding API key configured")
        return None

    embedder = HttpEmbedder(
        api_key=config.api_key, model=config.embedding_model, url=config.embedding_url
    )
    if database_url and database_url.startswith(("postgres://", "postgresql://")):
        from .pgvector import PgVectorIndex

        index: VectorIndex = PgVectorIndex(database_url)
    else:
        index = InMemoryVectorIndex()
    return DocumentRetriever(embedder, index, top_k=config.top_k)


__all__ = [
    "DocumentRetriever",
    "Embedder",
    "HttpEmbedder",
    "InMemoryVectorIndex",
    "SearchHit",
    "VectorIndex",
    "build_retriever",
    "chunk_text",
    "cosine_similarity",
]
