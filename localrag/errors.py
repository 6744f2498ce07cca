"""Exception types surfaced by the loaders and generation engines."""
from __future__ import annotations


class LocalRagError(Exception):
    """Base class for every error raised by localrag."""


class IndexLoadError(LocalRagError):
    """The corpus could not be fetched or parsed.  Blocks answering."""


class EmbeddingsLoadError(LocalRagError):
    """The embeddings could not be used.  Never escapes the loader."""


class EngineUnavailableError(LocalRagError):
    """No generation engine can serve this session."""
