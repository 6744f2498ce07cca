"""
Corpus Retriever
-----------------
Ranks an in-memory corpus against a free-text query and returns the top-k
chunks as grounding context.

Mode selection is re-derived on every call from the shapes of the inputs:

    embeddings present and len(embeddings) == len(corpus)  -> VECTOR
    anything else                                           -> LEXICAL

Vector path  : cosine(hash_vector(query), embeddings[i])
Lexical path : number of distinct query tokens contained (as substrings)
               in the lowercased chunk text

Both paths use a stable descending sort, so ties keep corpus order, and
always return exactly min(top_k, len(corpus)) chunks.  "Top-k" is not
"relevant-k": zero-scoring chunks fill the result when nothing matches.
"""
from __future__ import annotations

from typing import Optional, Sequence

from langsmith import traceable
from loguru import logger

from localrag.corpus.schemas import Chunk, Embeddings, RetrievalMode, ScoredChunk
from localrag.retrieval.vector_math import cosine_similarity, hash_vector, tokenize

DEFAULT_TOP_K = 5


def select_mode(corpus: Sequence[Chunk], embeddings: Optional[Embeddings]) -> RetrievalMode:
    if embeddings is not None and len(embeddings) == len(corpus):
        return RetrievalMode.VECTOR
    return RetrievalMode.LEXICAL


def _vector_scores(query: str, embeddings: Embeddings) -> list[float]:
    q_vec = hash_vector(query)
    return [cosine_similarity(q_vec, vec) for vec in embeddings]


def _lexical_scores(query: str, corpus: Sequence[Chunk]) -> list[float]:
    # Each distinct token counts at most once per chunk
    terms = list(dict.fromkeys(tokenize(query)))
    scores: list[float] = []
    for chunk in corpus:
        text = chunk.text.lower()
        scores.append(float(sum(1 for term in terms if term in text)))
    return scores


def rank(
    query: str,
    corpus: Sequence[Chunk],
    embeddings: Optional[Embeddings] = None,
    top_k: int = DEFAULT_TOP_K,
) -> list[ScoredChunk]:
    """
    Score every chunk and return the top-k as ScoredChunk records.

    Raises:
        ValueError: if top_k is negative.
    """
    if top_k < 0:
        raise ValueError(f"top_k must be >= 0, got {top_k}")
    if not corpus:
        return []

    mode = select_mode(corpus, embeddings)
    if mode is RetrievalMode.VECTOR:
        scores = _vector_scores(query, embeddings)
    else:
        scores = _lexical_scores(query, corpus)

    scored = [ScoredChunk(chunk=c, score=s, index=i) for i, (c, s) in enumerate(zip(corpus, scores))]
    # sorted() is stable: equal scores stay in ascending corpus order
    scored = sorted(scored, key=lambda sc: sc.score, reverse=True)
    return scored[: min(top_k, len(corpus))]


def retrieve(
    query: str,
    corpus: Sequence[Chunk],
    embeddings: Optional[Embeddings] = None,
    top_k: int = DEFAULT_TOP_K,
) -> list[Chunk]:
    """Return the top-k chunks for query, best first."""
    return [sc.chunk for sc in rank(query, corpus, embeddings, top_k)]


class Retriever:
    """
    Stateless wrapper around rank() with a configured top_k.

    Holds no corpus: the caller passes the current corpus and embeddings on
    every call, so a reload takes effect on the next query.
    """

    def __init__(self, top_k: int = DEFAULT_TOP_K) -> None:
        if top_k < 0:
            raise ValueError(f"top_k must be >= 0, got {top_k}")
        self.top_k = top_k

    @traceable(name="retrieve", run_type="retriever")
    def retrieve(
        self,
        query: str,
        corpus: Sequence[Chunk],
        embeddings: Optional[Embeddings] = None,
    ) -> list[ScoredChunk]:
        """
        Rank the corpus for query.

        Returns:
            List of ScoredChunk sorted by score descending (ties by corpus order).
        """
        mode = select_mode(corpus, embeddings)
        logger.debug(f"[Retriever] Query: {query[:80]!r} | mode={mode.value} | corpus={len(corpus)}")

        results = rank(query, corpus, embeddings, self.top_k)

        logger.info(
            f"[Retriever] Retrieved {len(results)} chunks "
            f"(top score: {results[0].score:.4f})" if results else "[Retriever] No results"
        )
        return results
