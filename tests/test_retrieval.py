# =============================================================================
# Unit Tests — Retrieval Worker
# =============================================================================
#
# Uses AsyncMock embedders and stores, so no API keys or vector database are
# needed. Covers tenant enforcement, the unranked-listing fallback and the
# placeholder answers.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from delegator.agents.errors import WorkerFailure
from delegator.agents.references import Reference
from delegator.agents.retrieval import (
    NO_RESULTS_ANSWER,
    RETRIEVAL_ERROR_ANSWER,
    RetrievalResult,
    RetrievalWorker,
)
from delegator.services.vectorstore import RetrievalHit

QUERY_VECTOR = [0.1, 0.2, 0.3]


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _make_embedder() -> AsyncMock:
    embedder = AsyncMock()
    embedder.embed.return_value = QUERY_VECTOR
    return embedder


def _make_store(hits: list[RetrievalHit] | None = None) -> AsyncMock:
    store = AsyncMock()
    store.search.return_value = hits or []
    store.list_recent.return_value = []
    return store


def _tech_doc_hits() -> list[RetrievalHit]:
    return [
        RetrievalHit(
            source_id="tech_doc_001",
            answer="Node.js 18+ and 4GB RAM are required.",
            pages=["3", "4"],
            score=0.91,
        ),
        RetrievalHit(
            source_id="tech_doc_001",
            answer="Authentication uses OAuth 2.0.",
            pages=["12", "13"],
            score=0.74,
        ),
    ]


class TestRetrievalWorker:
    """Tests for RetrievalWorker.run outcomes."""

    def test_missing_tenant_is_failure(self):
        embedder = _make_embedder()
        store = _make_store()
        worker = RetrievalWorker(embedder=embedder, store=store)

        result = _run(worker.run("What are the requirements?", None))

        assert isinstance(result, WorkerFailure)
        assert result.worker == "retrieval"
        assert result.reason == "missing_tenant"
        embedder.embed.assert_not_called()
        store.search.assert_not_called()

    def test_blank_tenant_is_failure(self):
        worker = RetrievalWorker(embedder=_make_embedder(), store=_make_store())
        result = _run(worker.run("What are the requirements?", "  "))
        assert isinstance(result, WorkerFailure)

    def test_search_scoped_to_tenant(self):
        embedder = _make_embedder()
        store = _make_store(_tech_doc_hits())
        worker = RetrievalWorker(embedder=embedder, store=store, top_k=3)

        _run(worker.run("What are the system requirements?", "company_a"))

        embedder.embed.assert_awaited_once_with("What are the system requirements?")
        store.search.assert_awaited_once_with(
            query_embedding=QUERY_VECTOR, tenant="company_a", limit=3,
        )

    def test_hits_become_passages_and_references(self):
        worker = RetrievalWorker(
            embedder=_make_embedder(), store=_make_store(_tech_doc_hits()),
        )
        result = _run(worker.run("requirements?", "company_a"))

        assert isinstance(result, RetrievalResult)
        assert result.error is None
        assert result.answer == (
            "1- Page 3, 4: Node.js 18+ and 4GB RAM are required.\n\n"
            "1- Page 12, 13: Authentication uses OAuth 2.0."
        )
        assert result.references == [
            Reference(source_id="tech_doc_001", pages=["12", "13", "3", "4"]),
        ]
        assert len(result.hits) == 2

    def test_no_hits(self):
        worker = RetrievalWorker(embedder=_make_embedder(), store=_make_store([]))
        result = _run(worker.run("anything about llamas?", "company_b"))

        assert result.answer == NO_RESULTS_ANSWER
        assert result.references == []
        assert result.error is None

    def test_search_failure_falls_back_to_same_tenant_listing(self):
        store = _make_store()
        store.search.side_effect = RuntimeError("index unavailable")
        store.list_recent.return_value = _tech_doc_hits()[:1]
        worker = RetrievalWorker(embedder=_make_embedder(), store=store, top_k=3)

        result = _run(worker.run("requirements?", "company_a"))

        store.list_recent.assert_awaited_once_with(tenant="company_a", limit=3)
        assert result.error is None
        assert result.references == [
            Reference(source_id="tech_doc_001", pages=["3", "4"]),
        ]

    def test_listing_failure_is_error_result(self):
        store = _make_store()
        store.search.side_effect = RuntimeError("index unavailable")
        store.list_recent.side_effect = RuntimeError("store down")
        worker = RetrievalWorker(embedder=_make_embedder(), store=store)

        result = _run(worker.run("requirements?", "company_a"))

        assert result.answer == RETRIEVAL_ERROR_ANSWER
        assert result.references == []
        assert "store down" in result.error

    def test_embedding_failure_is_error_result(self):
        embedder = _make_embedder()
        embedder.embed.side_effect = RuntimeError("embedding quota exhausted")
        store = _make_store(_tech_doc_hits())
        worker = RetrievalWorker(embedder=embedder, store=store)

        result = _run(worker.run("requirements?", "company_a"))

        assert result.answer == RETRIEVAL_ERROR_ANSWER
        assert result.error == "embedding quota exhausted"
        store.search.assert_not_called()
