# =============================================================================
# Demo Knowledge Base — Seed Records for Three Tenants
# =============================================================================
#
# Fictional technical, financial and research passages used by the demo
# queries and by local development. Each record is embedded by its question
# text and written to its tenant's store.
# =============================================================================

from __future__ import annotations

import logging
from collections import defaultdict

from delegator.services.embedder import OpenAIEmbedder
from delegator.services.vectorstore import DocumentEntry, VectorStore

logger = logging.getLogger(__name__)


SEED_DOCUMENTS: dict[str, list[DocumentEntry]] = {
    "company_a": [
        DocumentEntry(
            file_id="tech_doc_001",
            question="What are the system requirements for deployment?",
            answer=(
                "The system requires Node.js 18+, 4GB RAM minimum, and Docker "
                "installed. PostgreSQL 14+ is needed for the database."
            ),
            pages=["3", "4"],
        ),
        DocumentEntry(
            file_id="tech_doc_001",
            question="How is authentication handled?",
            answer=(
                "Authentication uses JWT tokens with OAuth2.0 integration. "
                "Tokens expire after 24 hours and refresh tokens are valid "
                "for 30 days."
            ),
            pages=["12", "13", "14"],
        ),
    ],
    "company_b": [
        DocumentEntry(
            file_id="financial_report_q3",
            question="What was the revenue for Q3 2024?",
            answer=(
                "Q3 2024 revenue reached $4.2 million, representing a 23% "
                "increase year-over-year driven by enterprise subscription "
                "growth."
            ),
            pages=["7"],
        ),
        DocumentEntry(
            file_id="financial_report_q3",
            question="What are the main cost drivers?",
            answer=(
                "Primary costs include cloud infrastructure (35%), personnel "
                "(45%), and marketing (20%). R&D investment increased by 15% "
                "this quarter."
            ),
            pages=["15", "16"],
        ),
    ],
    "research_team": [
        DocumentEntry(
            file_id="ai_safety_paper_v2",
            question="What are the key AI safety concerns identified?",
            answer=(
                "The paper identifies three critical concerns: alignment "
                "issues with human values, potential for unintended behaviors "
                "at scale, and challenges in interpretability of large models."
            ),
            pages=["2", "3", "8"],
        ),
    ],
}


def seed_vector_store(
    store: VectorStore,
    embedder: OpenAIEmbedder,
    documents: dict[str, list[DocumentEntry]] | None = None,
) -> dict[str, int]:
    """
    Embed and store the seed records, tenant by tenant.

    Args:
        store: Destination store.
        embedder: Embedder used for the question text of each record.
        documents: Records keyed by tenant. Defaults to SEED_DOCUMENTS.

    Returns:
        Number of records written per tenant.
    """
    documents = documents if documents is not None else SEED_DOCUMENTS
    written: dict[str, int] = defaultdict(int)

    for tenant, entries in documents.items():
        if not entries:
            continue
        logger.info("Seeding %d records for tenant=%s", len(entries), tenant)
        embeddings = embedder.embed_batch([entry.question for entry in entries])
        written[tenant] += store.add_entries(tenant, entries, embeddings)

    return dict(written)
