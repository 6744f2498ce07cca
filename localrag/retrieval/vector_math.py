"""
Vector Math
------------
Pure numeric primitives for the vector retrieval path:

  hash_vector        -- deterministic bag-of-hashed-words sketch (D=64)
  cosine_similarity  -- cosine over the shared prefix of two vectors

hash_vector is not a semantic embedding.  It only approximates relevance
through shared vocabulary, and is used when no real embeddings were shipped
with the corpus (or to build hash embeddings offline).
"""
from __future__ import annotations

import re
from typing import Sequence

import numpy as np

HASH_DIMENSIONS = 64
_HASH_MASK = 0xFFFFFFFF      # unsigned 32-bit wraparound

# ECMAScript \s set, not str.isspace(): \ufeff splits, \x1c-\x1f and \x85 do not
_WHITESPACE_RE = re.compile(
    "[\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]+"
)


def token_hash(token: str) -> int:
    """Order-sensitive rolling hash: h = h*31 + codepoint, mod 2**32."""
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) & _HASH_MASK
    return h


def tokenize(text: str) -> list[str]:
    """Lowercase and split on runs of whitespace, dropping empty tokens."""
    return [t for t in _WHITESPACE_RE.split(text.lower()) if t]


def hash_vector(text: str, dimensions: int = HASH_DIMENSIONS) -> np.ndarray:
    """
    Hash every token of text into a bucket and L2-normalise the counts.

    Returns a float64 array of shape (dimensions,).  Text without tokens
    yields the all-zero vector (no division).
    """
    vec = np.zeros(dimensions, dtype=np.float64)
    for token in tokenize(text):
        vec[token_hash(token) % dimensions] += 1.0

    norm_sq = float(np.dot(vec, vec))
    if norm_sq == 0.0:
        return vec
    return vec / np.sqrt(norm_sq)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    dot(a, b) / (|a| * |b|) over the first min(len(a), len(b)) components.

    Returns exactly 0.0 when either (truncated) vector has zero norm, so a
    zero vector is dissimilar to everything, itself included.
    """
    av = np.asarray(a, dtype=np.float64).ravel()
    bv = np.asarray(b, dtype=np.float64).ravel()
    n = min(av.shape[0], bv.shape[0])
    av, bv = av[:n], bv[:n]

    na = float(np.dot(av, av))
    nb = float(np.dot(bv, bv))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(av, bv)) / float(np.sqrt(na * nb))
