"""Tests for the answer flow, fallback rendering and reentrancy guard."""
from __future__ import annotations

import asyncio

import pytest

from localrag.corpus.loader import IndexLoadResult
from localrag.corpus.schemas import Chunk, RetrievalMode
from localrag.generation.engines import UnavailableEngine
from localrag.generation.prompts import (
    EMPTY_GENERATION_RESPONSE,
    INDEX_NOT_READY_RESPONSE,
    NO_CONTEXT_RESPONSE,
    SYSTEM_PROMPT,
)
from localrag.retrieval.vector_math import hash_vector
from localrag.serving.orchestrator import (
    AnswerOrchestrator,
    AnswerStatus,
    RagSession,
    build_messages,
    render_context,
)
from tests.fakes import BlockingEngine, EchoEngine, FailingEngine


class TestBuildMessages:
    def test_system_then_user_with_separated_context(self) -> None:
        context = [Chunk(id="a", text="first"), Chunk(id="b", text="second")]
        messages = build_messages("what?", context)
        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert messages[1]["role"] == "user"
        assert messages[1]["content"] == "CONTEXT:\nfirst\n---\nsecond\n\nQUESTION:\nwhat?"


class TestRenderContext:
    def test_numbered_with_optional_source(self) -> None:
        text = render_context([Chunk(id="a", text="alpha", source="s1"), Chunk(id="b", text="beta")])
        assert "[1] alpha\n(source: s1)" in text
        assert text.endswith("[2] beta")
        assert text.startswith("Local LLM is not available")

    def test_empty_context_message(self) -> None:
        assert render_context([]) == NO_CONTEXT_RESPONSE


class TestIndexState:
    @pytest.mark.asyncio
    async def test_index_still_loading(self) -> None:
        outcome = await AnswerOrchestrator(RagSession()).answer("anything")
        assert outcome.status is AnswerStatus.INDEX_NOT_READY
        assert outcome.answer == INDEX_NOT_READY_RESPONSE
        assert outcome.context == []

    @pytest.mark.asyncio
    async def test_index_load_error_is_reported(self) -> None:
        session = RagSession()
        session.apply_load(IndexLoadResult(error="Failed to load RAG index."))
        outcome = await AnswerOrchestrator(session).answer("anything")
        assert outcome.status is AnswerStatus.INDEX_UNAVAILABLE
        assert outcome.answer == "Failed to load RAG index."


class TestRetrievalOnly:
    @pytest.mark.asyncio
    async def test_end_to_end_without_engine(self, paris_corpus) -> None:
        session = RagSession(corpus=paris_corpus, engine=UnavailableEngine())
        outcome = await AnswerOrchestrator(session).answer("capital of France")

        assert outcome.status is AnswerStatus.CONTEXT_ONLY
        assert "[1] Paris is the capital of France." in outcome.answer
        assert "(source: doc1)" in outcome.answer
        assert outcome.context == paris_corpus
        assert outcome.mode is RetrievalMode.LEXICAL
        assert session.last_context == paris_corpus

    @pytest.mark.asyncio
    async def test_empty_corpus_has_no_context(self) -> None:
        session = RagSession(corpus=[])
        outcome = await AnswerOrchestrator(session).answer("capital of France")
        assert outcome.status is AnswerStatus.NO_CONTEXT
        assert outcome.answer == NO_CONTEXT_RESPONSE

    @pytest.mark.asyncio
    async def test_uses_vector_mode_with_matching_embeddings(self, animal_corpus) -> None:
        session = RagSession(
            corpus=animal_corpus, embeddings=[hash_vector(c.text) for c in animal_corpus]
        )
        outcome = await AnswerOrchestrator(session, top_k=1).answer("dogs bark")
        assert outcome.mode is RetrievalMode.VECTOR
        assert [c.id for c in outcome.context] == ["c1"]


class TestWithEngine:
    @pytest.mark.asyncio
    async def test_returns_engine_text_and_context(self, paris_corpus) -> None:
        engine = EchoEngine()
        session = RagSession(corpus=paris_corpus, engine=engine)
        outcome = await AnswerOrchestrator(session).answer("capital of France")

        assert outcome.status is AnswerStatus.ANSWERED
        assert outcome.answer == "The capital of France is Paris."
        assert outcome.context == paris_corpus
        user_turn = engine.calls[0][1]["content"]
        assert "Paris is the capital of France." in user_turn
        assert user_turn.endswith("QUESTION:\ncapital of France")

    @pytest.mark.asyncio
    async def test_empty_generation_gets_placeholder(self, paris_corpus) -> None:
        session = RagSession(corpus=paris_corpus, engine=EchoEngine(reply=""))
        outcome = await AnswerOrchestrator(session).answer("capital")
        assert outcome.status is AnswerStatus.ANSWERED
        assert outcome.answer == EMPTY_GENERATION_RESPONSE

    @pytest.mark.asyncio
    async def test_engine_failure_becomes_answer_text(self, paris_corpus) -> None:
        session = RagSession(corpus=paris_corpus, engine=FailingEngine())
        orchestrator = AnswerOrchestrator(session)
        outcome = await orchestrator.answer("capital")

        assert outcome.status is AnswerStatus.GENERATION_FAILED
        assert outcome.answer == "Error while answering: model crashed"
        assert outcome.context == paris_corpus
        assert not orchestrator.busy


class TestReentrancy:
    @pytest.mark.asyncio
    async def test_overlapping_call_is_rejected(self, animal_corpus) -> None:
        engine = BlockingEngine()
        session = RagSession(corpus=animal_corpus, engine=engine)
        orchestrator = AnswerOrchestrator(session, top_k=1)

        first = asyncio.create_task(orchestrator.answer("cat"))
        await engine.started.wait()
        assert orchestrator.busy

        second = await orchestrator.answer("dogs")
        assert second.status is AnswerStatus.BUSY
        assert second.context == []
        assert [c.id for c in session.last_context] == ["c0"]

        engine.release.set()
        outcome = await first
        assert outcome.status is AnswerStatus.ANSWERED
        assert outcome.answer == "first answer"
        assert [c.id for c in outcome.context] == ["c0"]
        assert engine.calls == 1
        assert not orchestrator.busy

    @pytest.mark.asyncio
    async def test_accepts_new_call_after_completion(self, paris_corpus) -> None:
        orchestrator = AnswerOrchestrator(RagSession(corpus=paris_corpus))
        await orchestrator.answer("Paris")
        outcome = await orchestrator.answer("France")
        assert outcome.status is AnswerStatus.CONTEXT_ONLY


class TestSession:
    def test_apply_load_replaces_state(self, paris_corpus) -> None:
        session = RagSession(last_context=paris_corpus, load_error="old")
        session.apply_load(IndexLoadResult(corpus=paris_corpus, embeddings=None))
        assert session.corpus == paris_corpus
        assert session.load_error is None
        assert session.last_context == []
        assert session.retrieval_mode is RetrievalMode.LEXICAL

    def test_mode_unknown_while_loading(self) -> None:
        assert RagSession().retrieval_mode is None

    def test_outcome_serialises(self, paris_corpus) -> None:
        outcome = asyncio.run(AnswerOrchestrator(RagSession(corpus=paris_corpus)).answer("Paris"))
        data = outcome.to_dict()
        assert data["status"] == "context_only"
        assert data["mode"] == "lexical"
        assert data["context"][0]["source"] == "doc1"
