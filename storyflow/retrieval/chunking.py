"""Sentence-aligned splitting of project documents before embedding."""

from __future__ import annotations

import re
from typing import List

DEFAULT_CHUNK_SIZE = 1500

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def chunk_text(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """Split ``text`` into chunks of whole sentences of at most ``chunk_size`` characters.

    A single sentence longer than ``chunk_size`` becomes a chunk of its own.
    Blank input yields no chunks.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    chunks: List[str] = []
    current = ""
    for sentence in _SENTENCE_END.split(text.strip()):
        if not sentence:
            continue
        if current and len(current) + 1 + len(sentence) > chunk_size:
            chunks.append(current)
            current = ""
        current = f"{current} {sentence}" if current else sentence
    if current:
        chunks.append(current)
    return chunks
