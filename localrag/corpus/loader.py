"""
Corpus Loader
--------------
Fetches the two startup artifacts that feed the retriever:

  corpus_chunks.json      -- JSON array of {id, text, source?}     (required)
  corpus_embeddings.json  -- JSON array of equal-length number arrays (optional)

Sources are local paths or http(s) URLs.  Both loads are coroutines that
always finish with a result-or-error record (IndexLoadResult); neither can
leave the session pending forever.

Failure policy:
  - corpus fetch / parse failure  -> IndexLoadError, recorded on the result
  - embeddings failure / mismatch -> logged, embeddings treated as absent
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import httpx
import numpy as np
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from localrag.corpus.schemas import Chunk
from localrag.errors import EmbeddingsLoadError, IndexLoadError
from localrag.retrieval.vector_math import hash_vector
from localrag.utils.helpers import parse_json_bytes, save_json

CHUNKS_PATH = "data/rag/corpus_chunks.json"
EMBEDDINGS_PATH = "data/rag/corpus_embeddings.json"
FETCH_TIMEOUT_S = 30.0

_CHUNKS_ADAPTER = TypeAdapter(list[Chunk])
_VECTORS_ADAPTER = TypeAdapter(list[list[float]])

# InvalidURL is not an HTTPError; ValueError covers NUL bytes in local paths
_FETCH_ERRORS = (OSError, ValueError, httpx.HTTPError, httpx.InvalidURL)


@dataclass(frozen=True)
class IndexLoadResult:
    """Outcome of a full index load: a corpus, or the error that blocked it."""

    corpus: Optional[list[Chunk]] = None
    embeddings: Optional[list[np.ndarray]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.corpus is not None


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


async def fetch_bytes(location: str, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """
    Read a whole artifact from a path or URL.

    Raises:
        FileNotFoundError / OSError / ValueError for local paths,
        httpx.HTTPError or httpx.InvalidURL for remote ones (including non-2xx statuses).
    """
    if not _is_url(location):
        return await asyncio.to_thread(Path(location).read_bytes)

    if client is not None:
        response = await client.get(location)
        response.raise_for_status()
        return response.content

    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_S, follow_redirects=True) as owned:
        response = await owned.get(location)
        response.raise_for_status()
        return response.content


def parse_chunks(raw: bytes) -> list[Chunk]:
    """Parse a corpus payload.  Raises IndexLoadError on malformed data."""
    try:
        return _CHUNKS_ADAPTER.validate_python(parse_json_bytes(raw))
    except (ValueError, ValidationError) as exc:
        raise IndexLoadError(f"Corpus is not a JSON array of chunk records: {exc}") from exc


def parse_embeddings(raw: bytes, expected: int) -> list[np.ndarray]:
    """
    Parse an embeddings payload and check it lines up with the corpus.

    Raises:
        EmbeddingsLoadError: on parse failure or count mismatch.
    """
    try:
        rows = _VECTORS_ADAPTER.validate_python(parse_json_bytes(raw))
    except (ValueError, ValidationError) as exc:
        raise EmbeddingsLoadError(f"Embeddings are not a JSON array of number arrays: {exc}") from exc

    if len(rows) != expected:
        raise EmbeddingsLoadError(f"Mismatch: {expected} chunks vs {len(rows)} embeddings")

    dims = {len(r) for r in rows}
    if len(dims) > 1:
        # Cosine falls back to the shared prefix, so this only degrades ranking
        logger.warning(f"[Loader] Embeddings have mixed dimensions {sorted(dims)}")

    return [np.asarray(r, dtype=np.float64) for r in rows]


async def load_corpus(location: str, client: Optional[httpx.AsyncClient] = None) -> list[Chunk]:
    """Fetch and parse the corpus.  Raises IndexLoadError on any failure."""
    try:
        raw = await fetch_bytes(location, client)
    except _FETCH_ERRORS as exc:
        raise IndexLoadError(f"Failed to load {location}: {exc}") from exc

    chunks = parse_chunks(raw)
    logger.info(f"[Loader] Loaded {len(chunks)} chunks from {location}")
    return chunks


async def load_embeddings(
    location: Optional[str],
    expected: int,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[list[np.ndarray]]:
    """
    Fetch and parse the embeddings.  Never raises: every failure is logged
    and reported as None so retrieval falls back to lexical mode.
    """
    if not location:
        logger.info("[Loader] No embeddings source configured; using lexical retrieval only.")
        return None

    try:
        raw = await fetch_bytes(location, client)
    except _FETCH_ERRORS as exc:
        logger.info(f"[Loader] No embeddings at {location} ({exc}); using lexical retrieval only.")
        return None

    try:
        vectors = parse_embeddings(raw, expected)
    except EmbeddingsLoadError as exc:
        logger.warning(f"[Loader] {exc}; using lexical retrieval instead.")
        return None

    logger.info(f"[Loader] Loaded {len(vectors)} embeddings from {location}")
    return vectors


async def load_index(
    chunks_location: str = CHUNKS_PATH,
    embeddings_location: Optional[str] = EMBEDDINGS_PATH,
    client: Optional[httpx.AsyncClient] = None,
) -> IndexLoadResult:
    """Load corpus then embeddings and fold every outcome into one record."""
    try:
        corpus = await load_corpus(chunks_location, client)
    except IndexLoadError as exc:
        logger.error(f"[Loader] RAG index load error: {exc}")
        return IndexLoadResult(
            error=f"Failed to load RAG index. Ensure {chunks_location} exists and is valid."
        )

    embeddings = await load_embeddings(embeddings_location, len(corpus), client)
    return IndexLoadResult(corpus=corpus, embeddings=embeddings)


def build_hash_embeddings(corpus: Sequence[Chunk]) -> list[np.ndarray]:
    """Hash every chunk text into the same 64-d space used for queries."""
    return [hash_vector(chunk.text) for chunk in corpus]


def save_hash_embeddings(corpus: Sequence[Chunk], path: str | Path = EMBEDDINGS_PATH) -> Path:
    """Write hash embeddings for corpus as a JSON array parallel to the chunks."""
    vectors = build_hash_embeddings(corpus)
    save_json([v.tolist() for v in vectors], path)
    logger.info(f"[Loader] {len(vectors)} hash embeddings saved -> {path}")
    return Path(path)
