"""pgvector-backed index over the ``document_embeddings`` table."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from ..errors import TransientError
from ..persistence.postgres import STORAGE_ERRORS
from .base import SearchHit


def _vector_literal(vector: List[float]) -> str:
    return "[" + ",".join(str(v) for v in vector) + "]"


class PgVectorIndex:
    """Nearest-neighbour search with the pgvector ``<=>`` cosine operator.

    Only ``project_id`` and ``document_id`` are accepted as filters since
    they are real columns of the table.
    """

    FILTER_COLUMNS = ("project_id", "document_id")

    def __init__(self, dsn: str, dimensions: int = 1536):
        self._dsn = dsn
        self.dimensions = dimensions
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
        except STORAGE_ERRORS as e:
            raise TransientError(f"Could not connect to PostgreSQL: {e}") from e
        if not self._initialized:
            try:
                await self._ensure_schema(conn)
            except STORAGE_ERRORS as e:
                await conn.close()
                raise TransientError(f"Could not prepare the embeddings table: {e}") from e
            except BaseException:
                await conn.close()
                raise
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS document_embeddings (
                id SERIAL PRIMARY KEY,
                project_id TEXT,
                document_id TEXT,
                chunk_text TEXT NOT NULL,
                metadata JSONB,
                embedding vector({self.dimensions}) NOT NULL
            )
            """
        )

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        conn = await self._connect()
        try:
            yield conn
        except STORAGE_ERRORS as e:
            raise TransientError(f"Embedding store operation failed: {e}") from e
        finally:
            await conn.close()

    async def add(
        self, content: str, vector: List[float], metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        metadata = metadata or {}
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO document_embeddings
                    (project_id, document_id, chunk_text, metadata, embedding)
                VALUES ($1, $2, $3, $4, $5::vector)
                """,
                metadata.get("project_id"),
                metadata.get("document_id"),
                content,
                json.dumps(metadata),
                _vector_literal(vector),
            )

    async def search(
        self, vector: List[float], k: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchHit]:
        filter = filter or {}
        unknown = set(filter) - set(self.FILTER_COLUMNS)
        if unknown:
            raise ValueError(f"Unsupported filter fields: {sorted(unknown)}")

        params: List[Any] = [_vector_literal(vector)]
        clauses = []
        for key, value in filter.items():
            params.append(value)
            clauses.append(f"{key} = ${len(params)}")
        query = "SELECT chunk_text, metadata, 1 - (embedding <=> $1::vector) AS score FROM document_embeddings"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        params.append(k)
        query += f" ORDER BY embedding <=> $1::vector LIMIT ${len(params)}"

        async with self._connection() as conn:
            rows = await conn.fetch(query, *params)
        return [
            SearchHit(
                content=r["chunk_text"],
                score=float(r["score"]),
                metadata=json.loads(r["metadata"]) if r["metadata"] else {},
            )
            for r in rows
        ]
