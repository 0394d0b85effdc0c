"""In-memory vector index using cosine similarity."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple

from .base import SearchHit


def cosine_similarity(a: List[float], b: List[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector size mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorIndex:
    """Keeps chunks in a list; suitable for tests and small projects."""

    def __init__(self) -> None:
        self._entries: List[Tuple[str, List[float], Dict[str, Any]]] = []

    async def add(
        self, content: str, vector: List[float], metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        self._entries.append((content, list(vector), dict(metadata or {})))

    async def search(
        self, vector: List[float], k: int, filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchHit]:
        wanted = filter or {}
        hits = [
            SearchHit(content=content, score=cosine_similarity(vector, stored), metadata=meta)
            for content, stored, meta in self._entries
            if all(meta.get(key) == value for key, value in wanted.items())
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:k]
