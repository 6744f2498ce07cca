"""Shared fixtures: small corpora."""
from __future__ import annotations

import pytest

from localrag.corpus.schemas import Chunk


@pytest.fixture
def animal_corpus() -> list[Chunk]:
    return [
        Chunk(id="c0", text="the cat sat"),
        Chunk(id="c1", text="dogs bark loudly"),
        Chunk(id="c2", text="category theory"),
    ]


@pytest.fixture
def paris_corpus() -> list[Chunk]:
    return [Chunk(id="p0", text="Paris is the capital of France.", source="doc1")]
