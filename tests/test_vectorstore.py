# =============================================================================
# Unit Tests — Vector Store (ChromaDB backend)
# =============================================================================
#
# Tests tenant-scoped add, search and unranked listing against ChromaDB's
# in-process mode (no external services needed).
# pgvector tests are skipped here — they require a running PostgreSQL instance.
# =============================================================================

import asyncio
import uuid

import pytest

from delegator.services.vectorstore import (
    ChromaVectorStore,
    DocumentEntry,
    RetrievalHit,
    get_vector_store,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestChromaVectorStore:
    """Tests for ChromaVectorStore (in-process mode)."""

    def _make_store(self) -> ChromaVectorStore:
        """Create a store whose collections no other test shares."""
        # In-process clients share one in-memory system, so prefixes must
        # be unique per test.
        return ChromaVectorStore(collection_prefix=f"t{uuid.uuid4().hex[:10]}")

    def _seed_two_tenants(self, store: ChromaVectorStore) -> None:
        store.add_entries(
            "company_a",
            [
                DocumentEntry(
                    file_id="tech_doc_001",
                    question="What are the system requirements?",
                    answer="Node.js 18+ is required.",
                    pages=["3", "4"],
                ),
            ],
            [[1.0, 0.0, 0.0]],
        )
        store.add_entries(
            "company_b",
            [
                DocumentEntry(
                    file_id="financial_report_q3",
                    question="What drove revenue growth?",
                    answer="Enterprise subscriptions grew 25%.",
                    pages=["7"],
                ),
            ],
            [[1.0, 0.0, 0.0]],
        )

    def test_add_entries_returns_count(self):
        store = self._make_store()
        written = store.add_entries(
            "company_a",
            [
                DocumentEntry(file_id="f1", question="q1", answer="a1", pages=["1"]),
                DocumentEntry(file_id="f2", question="q2", answer="a2", pages=["2"]),
            ],
            [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]],
        )
        assert written == 2

    def test_search_returns_hits(self):
        store = self._make_store()
        self._seed_two_tenants(store)

        hits = _run(store.search([1.0, 0.0, 0.0], tenant="company_a", limit=3))

        assert len(hits) == 1
        assert isinstance(hits[0], RetrievalHit)
        assert hits[0].source_id == "tech_doc_001"
        assert hits[0].pages == ["3", "4"]
        assert hits[0].answer == "Node.js 18+ is required."
        assert hits[0].score == pytest.approx(1.0, abs=1e-3)

    def test_search_never_crosses_tenants(self):
        store = self._make_store()
        self._seed_two_tenants(store)

        hits = _run(store.search([1.0, 0.0, 0.0], tenant="company_b", limit=10))

        assert [hit.source_id for hit in hits] == ["financial_report_q3"]

    def test_search_ranks_by_similarity(self):
        store = self._make_store()
        store.add_entries(
            "research_team",
            [
                DocumentEntry(file_id="far", question="q", answer="far"),
                DocumentEntry(file_id="near", question="q", answer="near"),
            ],
            [[0.0, 1.0, 0.0], [1.0, 0.1, 0.0]],
        )

        hits = _run(store.search([1.0, 0.0, 0.0], tenant="research_team", limit=2))

        assert [hit.source_id for hit in hits] == ["near", "far"]

    def test_search_empty_tenant(self):
        store = self._make_store()
        assert _run(store.search([1.0, 0.0, 0.0], tenant="nobody", limit=3)) == []

    def test_list_recent_scoped_and_unranked(self):
        store = self._make_store()
        self._seed_two_tenants(store)

        hits = _run(store.list_recent(tenant="company_a", limit=3))

        assert [hit.source_id for hit in hits] == ["tech_doc_001"]
        assert hits[0].score is None

    def test_list_recent_respects_limit(self):
        store = self._make_store()
        store.add_entries(
            "company_a",
            [
                DocumentEntry(file_id=f"f{i}", question="q", answer="a")
                for i in range(5)
            ],
            [[float(i), 1.0, 0.0] for i in range(5)],
        )
        assert len(_run(store.list_recent(tenant="company_a", limit=3))) == 3

    def test_reads_of_unknown_tenant_create_nothing(self):
        store = self._make_store()
        before = len(store._client.list_collections())

        for tenant in ("a1", "b2", "c3"):
            assert _run(store.search([0.1, 0.2, 0.3], tenant=tenant, limit=3)) == []
            assert _run(store.list_recent(tenant=tenant, limit=3)) == []

        assert len(store._client.list_collections()) == before

    def test_invalid_tenant_rejected(self):
        store = self._make_store()
        with pytest.raises(ValueError):
            _run(store.search([1.0, 0.0, 0.0], tenant="../other", limit=3))


class TestGetVectorStore:
    def test_chroma_is_default(self):
        assert isinstance(get_vector_store("chroma"), ChromaVectorStore)
