"""
Prompt templates and fixed answer texts.

Keeping templates in a separate module makes them easy to iterate on
without touching orchestration logic.
"""

# ---------------------------------------------------------------------------
# Grounding prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a RAG assistant. Use ONLY the provided context. "
    "If the answer is not in the context, say you don't know."
)

CONTEXT_SEPARATOR = "\n---\n"

USER_TEMPLATE = "CONTEXT:\n{context}\n\nQUESTION:\n{question}"

# ---------------------------------------------------------------------------
# Engine answers
# ---------------------------------------------------------------------------

EMPTY_GENERATION_RESPONSE = "No answer generated by local model."

GENERATION_ERROR_TEMPLATE = "Error while answering: {error}"

# ---------------------------------------------------------------------------
# Retrieval-only (no engine) rendering
# ---------------------------------------------------------------------------

FALLBACK_HEADER = (
    "Local LLM is not available on this device.\n"
    "Showing top retrieved context chunks instead:\n"
)

FALLBACK_CHUNK_TEMPLATE = "[{index}] {text}"

FALLBACK_SOURCE_TEMPLATE = "\n(source: {source})"

NO_CONTEXT_RESPONSE = (
    "No relevant context found in the local corpus. (fallback mode: no local LLM)"
)

# ---------------------------------------------------------------------------
# Index state
# ---------------------------------------------------------------------------

INDEX_NOT_READY_RESPONSE = "RAG index is still loading. Please try again shortly."

# ---------------------------------------------------------------------------
# Engine status labels
# ---------------------------------------------------------------------------

STATUS_INIT = "Loading language model / probing environment..."
STATUS_READY = "{provider} ready ({model})"
STATUS_FALLBACK = "Fallback mode: retrieval-only RAG ({reason})"
