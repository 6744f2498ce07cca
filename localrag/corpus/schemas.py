"""
Corpus schemas - the retrievable units and their per-query ranking records.

A Chunk is created once when the corpus is loaded and is never mutated.
Embeddings are kept as a plain parallel sequence of vectors; the position
in the corpus is the only join key between the two.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

# One vector per chunk, same order as the corpus
Embeddings = Sequence[Sequence[float]]


class Chunk(BaseModel):
    """A single retrievable text window with optional provenance."""

    model_config = ConfigDict(frozen=True)

    id: str                              # Unique within the corpus
    text: str                            # Empty text is tolerated and scores ~0
    source: Optional[str] = None         # e.g. "doc1", "handbook.pdf#p3"


class RetrievalMode(str, Enum):
    VECTOR = "vector"
    LEXICAL = "lexical"


@dataclass(frozen=True)
class ScoredChunk:
    """Transient ranking record produced per query."""

    chunk: Chunk
    score: float
    index: int                           # Original corpus position (tie-break key)
