"""Interfaces for embedding text and searching project documents."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    content: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]:
        """Return the embedding vector for ``text``."""


class VectorIndex(Protocol):
    async def add(
        self, content: str, vector: List[float], metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Store ``content`` under ``vector``."""

    async def search(
        self, vector: List[float], k: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchHit]:
        """Return the ``k`` nearest stored chunks matching ``filter``."""
