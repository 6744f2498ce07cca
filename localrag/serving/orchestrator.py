"""
Answer Orchestrator
--------------------
Runs one question through the local RAG flow:

    question
        |
        v
    index ready?  --no-->  INDEX_NOT_READY / INDEX_UNAVAILABLE
        |
        v
    Retriever (vector or lexical, top_k=5)
        |
        v
    engine available?
        |-- yes --> grounded chat completion  --> ANSWERED / GENERATION_FAILED
        |-- no  --> numbered context rendering --> CONTEXT_ONLY / NO_CONTEXT
        |
        v
    AnswerOutcome (answer text + the retrieved context)

All state lives on an explicit RagSession.  Only one answer() may be in
flight per orchestrator; overlapping calls return BUSY without touching the
in-flight call or the session's last context.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from langsmith import traceable
from loguru import logger

from localrag.corpus.loader import IndexLoadResult
from localrag.corpus.schemas import Chunk, Embeddings, RetrievalMode
from localrag.generation.engines import GenerationEngine, Message, UnavailableEngine
from localrag.generation.prompts import (
    CONTEXT_SEPARATOR,
    EMPTY_GENERATION_RESPONSE,
    FALLBACK_CHUNK_TEMPLATE,
    FALLBACK_HEADER,
    FALLBACK_SOURCE_TEMPLATE,
    GENERATION_ERROR_TEMPLATE,
    INDEX_NOT_READY_RESPONSE,
    NO_CONTEXT_RESPONSE,
    SYSTEM_PROMPT,
    USER_TEMPLATE,
)
from localrag.retrieval.retriever import DEFAULT_TOP_K, Retriever, select_mode


# ---------------------------------------------------------------------------
# Session & outcome
# ---------------------------------------------------------------------------

@dataclass
class RagSession:
    """
    Everything a question needs, passed explicitly instead of living in
    ambient UI state.

    corpus is None while the index is loading (or after it failed to load,
    in which case load_error holds the user-facing message).
    """

    corpus: Optional[list[Chunk]] = None
    embeddings: Optional[Embeddings] = None
    load_error: Optional[str] = None
    engine: GenerationEngine = field(default_factory=UnavailableEngine)
    last_context: list[Chunk] = field(default_factory=list)

    def apply_load(self, result: IndexLoadResult) -> None:
        """Replace the corpus wholesale with a finished load."""
        self.corpus = result.corpus
        self.embeddings = result.embeddings
        self.load_error = result.error
        self.last_context = []

    @property
    def retrieval_mode(self) -> Optional[RetrievalMode]:
        if self.corpus is None:
            return None
        return select_mode(self.corpus, self.embeddings)


class AnswerStatus(str, Enum):
    ANSWERED = "answered"
    GENERATION_FAILED = "generation_failed"
    CONTEXT_ONLY = "context_only"
    NO_CONTEXT = "no_context"
    INDEX_NOT_READY = "index_not_ready"
    INDEX_UNAVAILABLE = "index_unavailable"
    BUSY = "busy"


@dataclass
class AnswerOutcome:
    """Result of a single answer() call."""

    query: str
    status: AnswerStatus
    answer: str
    context: list[Chunk] = field(default_factory=list)
    mode: Optional[RetrievalMode] = None
    retrieval_ms: float = 0.0
    generation_ms: float = 0.0

    @property
    def total_ms(self) -> float:
        return self.retrieval_ms + self.generation_ms

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "status": self.status.value,
            "answer": self.answer,
            "mode": self.mode.value if self.mode else None,
            "context": [c.model_dump() for c in self.context],
            "latency_ms": {
                "retrieval": round(self.retrieval_ms, 1),
                "generation": round(self.generation_ms, 1),
                "total": round(self.total_ms, 1),
            },
        }


# ---------------------------------------------------------------------------
# Prompt assembly & fallback rendering
# ---------------------------------------------------------------------------

def build_messages(question: str, context: Sequence[Chunk]) -> list[Message]:
    """System instruction plus one user turn carrying context and question."""
    context_text = CONTEXT_SEPARATOR.join(c.text for c in context)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_TEMPLATE.format(context=context_text, question=question)},
    ]


def render_context(context: Sequence[Chunk]) -> str:
    """Numbered, deterministic rendering used when no engine is available."""
    if not context:
        return NO_CONTEXT_RESPONSE

    lines = [FALLBACK_HEADER]
    for i, chunk in enumerate(context, start=1):
        entry = FALLBACK_CHUNK_TEMPLATE.format(index=i, text=chunk.text)
        if chunk.source:
            entry += FALLBACK_SOURCE_TEMPLATE.format(source=chunk.source)
        lines.append(entry)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class AnswerOrchestrator:
    """
    Coordinates retrieval with the session's generation engine.

    Usage:
        session = RagSession(engine=await EngineBootstrap(cfg).run())
        session.apply_load(await load_index(...))
        outcome = await AnswerOrchestrator(session).answer("What is the capital of France?")
        print(outcome.answer)
    """

    def __init__(self, session: RagSession, top_k: int = DEFAULT_TOP_K) -> None:
        self.session = session
        self.retriever = Retriever(top_k=top_k)
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    @traceable(name="rag_answer", run_type="chain")
    async def answer(self, question: str) -> AnswerOutcome:
        """
        Answer one question.  Never raises for engine or index problems;
        they come back as the outcome's status and text.
        """
        if self._in_flight:
            logger.warning("[Orchestrator] Answer already in flight; rejecting overlapping call")
            return AnswerOutcome(query=question, status=AnswerStatus.BUSY, answer="")

        self._in_flight = True
        try:
            return await self._answer(question)
        finally:
            self._in_flight = False

    async def _answer(self, question: str) -> AnswerOutcome:
        session = self.session
        logger.info(f"[Orchestrator] Query: {question[:100]!r}")

        # -- 1. Index state -----------------------------------------------------
        if session.corpus is None:
            if session.load_error:
                return AnswerOutcome(
                    query=question,
                    status=AnswerStatus.INDEX_UNAVAILABLE,
                    answer=session.load_error,
                )
            return AnswerOutcome(
                query=question,
                status=AnswerStatus.INDEX_NOT_READY,
                answer=INDEX_NOT_READY_RESPONSE,
            )

        # -- 2. Retrieve --------------------------------------------------------
        t0 = time.perf_counter()
        mode = select_mode(session.corpus, session.embeddings)
        scored = self.retriever.retrieve(question, session.corpus, session.embeddings)
        context = [sc.chunk for sc in scored]
        retrieval_ms = (time.perf_counter() - t0) * 1000
        session.last_context = context

        # -- 3a. Retrieval-only -------------------------------------------------
        engine = session.engine
        if not engine.available:
            return AnswerOutcome(
                query=question,
                status=AnswerStatus.CONTEXT_ONLY if context else AnswerStatus.NO_CONTEXT,
                answer=render_context(context),
                context=context,
                mode=mode,
                retrieval_ms=retrieval_ms,
            )

        # -- 3b. Generate -------------------------------------------------------
        t1 = time.perf_counter()
        try:
            text = await engine.complete(build_messages(question, context))
            status = AnswerStatus.ANSWERED
            answer = text or EMPTY_GENERATION_RESPONSE
        except Exception as exc:
            logger.error(f"[Orchestrator] Generation failed: {exc!r}")
            status = AnswerStatus.GENERATION_FAILED
            answer = GENERATION_ERROR_TEMPLATE.format(error=str(exc) or type(exc).__name__)
        generation_ms = (time.perf_counter() - t1) * 1000

        logger.info(
            f"[Orchestrator] Complete | status={status.value} | "
            f"retrieve={retrieval_ms:.0f}ms generate={generation_ms:.0f}ms"
        )

        return AnswerOutcome(
            query=question,
            status=status,
            answer=answer,
            context=context,
            mode=mode,
            retrieval_ms=retrieval_ms,
            generation_ms=generation_ms,
        )
