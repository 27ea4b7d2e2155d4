# =============================================================================
# Retrieval Worker — Tenant-Scoped Search with Cited Passages
# =============================================================================
#
# Runs only when the router sets needs_rag. For one (query, tenant):
#
# 1. EMBED    — vector for the query text
# 2. SEARCH   — top-K similar records within the tenant
#    └── on search failure: unranked listing of up to K records of the
#        SAME tenant
# 3. FORMAT   — numbered passages + deduplicated references
#
# Outcomes:
#   - tenant missing          → WorkerFailure(reason="missing_tenant")
#   - zero hits               → fixed "couldn't find" answer, no references
#   - anything else going bad → error-flavoured RetrievalResult
# The worker never raises into the orchestrator.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from delegator.agents.errors import MissingTenant, WorkerFailure
from delegator.agents.references import (
    Reference,
    aggregate_references,
    build_passages,
)
from delegator.config import settings
from delegator.services.embedder import Embedder
from delegator.services.vectorstore import RetrievalHit, VectorStore

logger = logging.getLogger(__name__)


NO_RESULTS_ANSWER = "I couldn't find any relevant information in the documents."
RETRIEVAL_ERROR_ANSWER = "An error occurred while retrieving information."


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class RetrievalResult:
    """
    Output of one retrieval run.

    `error` is set when the answer text is an error placeholder rather than
    retrieved content.
    """

    answer: str
    references: list[Reference] = field(default_factory=list)
    hits: list[RetrievalHit] = field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------


class RetrievalWorker:
    """
    Searches one tenant's documents and builds a cited answer passage.

    Args:
        embedder: Query embedding collaborator.
        store: Tenant-scoped vector store.
        top_k: Hits requested per search. Defaults to settings.retrieval_top_k.
        timeout: Per-call timeout in seconds for embed/search/list calls.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: VectorStore,
        top_k: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._top_k = top_k or settings.retrieval_top_k
        self._timeout = timeout or settings.collaborator_timeout_seconds

    async def run(
        self,
        query: str,
        tenant: str | None,
    ) -> RetrievalResult | WorkerFailure:
        """
        Retrieve and format passages for the query within `tenant`.

        Returns:
            RetrievalResult (possibly error-flavoured), or WorkerFailure
            when no tenant was supplied.
        """
        try:
            tenant = _require_tenant(tenant)
        except MissingTenant as e:
            logger.warning("Retrieval skipped: %s", e)
            return WorkerFailure(
                worker="retrieval",
                reason="missing_tenant",
                message=str(e),
            )

        logger.info("Retrieval: tenant=%s, query='%s'", tenant, query[:80])

        try:
            hits = await self._retrieve(query, tenant)

            if not hits:
                logger.info("Retrieval: no hits for tenant=%s", tenant)
                return RetrievalResult(answer=NO_RESULTS_ANSWER)

            references = aggregate_references(hits)
            logger.info(
                "Retrieval complete: %d hits, %d sources",
                len(hits), len(references),
            )
            return RetrievalResult(
                answer=build_passages(hits),
                references=references,
                hits=list(hits),
            )

        except Exception as e:
            logger.exception("Retrieval failed for tenant=%s: %s", tenant, e)
            return RetrievalResult(
                answer=RETRIEVAL_ERROR_ANSWER,
                error=str(e) or type(e).__name__,
            )

    async def _retrieve(self, query: str, tenant: str) -> list[RetrievalHit]:
        """Embed, then search; fall back to an unranked tenant listing."""
        vector = await asyncio.wait_for(
            self._embedder.embed(query), timeout=self._timeout,
        )

        try:
            return await asyncio.wait_for(
                self._store.search(
                    query_embedding=vector, tenant=tenant, limit=self._top_k,
                ),
                timeout=self._timeout,
            )
        except Exception as e:
            logger.warning(
                "Vector search failed (%s), falling back to unranked "
                "listing for tenant=%s",
                e, tenant,
            )

        return await asyncio.wait_for(
            self._store.list_recent(tenant=tenant, limit=self._top_k),
            timeout=self._timeout,
        )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _require_tenant(tenant: str | None) -> str:
    """Return the tenant, or raise MissingTenant when it is absent or blank."""
    if not tenant or not tenant.strip():
        raise MissingTenant("Tenant is required for retrieval.")
    return tenant
