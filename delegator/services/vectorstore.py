# =============================================================================
# Vector Store Abstraction — Tenant-Scoped Search Backends
# =============================================================================
#
# A common interface for the document store the retrieval worker searches,
# with concrete implementations for ChromaDB and pgvector (PostgreSQL).
#
# TENANT ISOLATION:
# Every read and write takes exactly one tenant. Neither backend has a code
# path that can return another tenant's records:
#   - ChromaDB: one collection per tenant ("{prefix}_{tenant}")
#   - pgvector: every statement filters on knowledge_records.tenant
#
# Two read operations:
#   - search():      ranked similarity search (primary path)
#   - list_recent(): unranked listing (used when search fails)
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── ChromaVectorStore — ChromaDB (in-process or client/server)
#   │   ├── add_entries()  — sync (ChromaDB client is sync)
#   │   └── search() / list_recent() — async via asyncio.to_thread()
#   └── PgVectorStore     — PostgreSQL + pgvector extension
#       ├── add_entries()  — sync via get_sync_session()
#       └── search() / list_recent() — async via async_session_factory()
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

import chromadb
from chromadb.errors import ChromaError
from sqlalchemy import select

from delegator.config import settings
from delegator.db.engine import async_session_factory, get_sync_session
from delegator.db.models import KnowledgeRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class RetrievalHit:
    """
    A single raw record returned by a tenant-scoped search.

    `source_id` is the citation key (the file the passage came from);
    `pages` keeps the record's page labels in stored order.
    """

    source_id: str
    answer: str
    pages: list[str] = field(default_factory=list)
    question: str = ""
    score: float | None = None  # Cosine similarity; None for unranked listings


@dataclass
class DocumentEntry:
    """A passage to be written into a tenant's store."""

    file_id: str
    question: str
    answer: str
    pages: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Protocol defining the tenant-scoped store interface."""

    def add_entries(
        self,
        tenant: str,
        entries: list[DocumentEntry],
        embeddings: list[list[float]],
    ) -> int:
        """
        Store entries with their embeddings under one tenant. Sync.

        Returns:
            Number of entries written.
        """
        ...

    async def search(
        self,
        query_embedding: list[float],
        tenant: str,
        limit: int = 3,
    ) -> list[RetrievalHit]:
        """
        Find the `limit` most similar records within `tenant`.

        Returns:
            Hits sorted by similarity (highest first).
        """
        ...

    async def list_recent(
        self,
        tenant: str,
        limit: int = 3,
    ) -> list[RetrievalHit]:
        """Return up to `limit` records of `tenant`, unranked."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: ChromaDB
# ---------------------------------------------------------------------------

_TENANT_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*[A-Za-z0-9]$|^[A-Za-z0-9]$")


class ChromaVectorStore:
    """
    ChromaDB-backed store with one collection per tenant.

    ChromaDB supports both in-process and client/server modes:
    - In-process (default): data held in memory
    - Client/server: set CHROMA_URL for a Docker deployment

    Only add_entries() creates collections; reads of a tenant that was
    never written return no hits.
    """

    def __init__(self, collection_prefix: str | None = None) -> None:
        if settings.chroma_url:
            self._client = chromadb.HttpClient(host=settings.chroma_url)
        else:
            self._client = chromadb.Client()

        self._prefix = collection_prefix or settings.collection_prefix

    def _collection_name(self, tenant: str) -> str:
        if not tenant or not _TENANT_NAME.match(tenant):
            raise ValueError(f"Invalid tenant name: {tenant!r}")
        return f"{self._prefix}_{tenant}"

    def _writable_collection(self, tenant: str):
        """Resolve the tenant's collection, creating it on first write."""
        # Cosine distance to match the pgvector backend
        return self._client.get_or_create_collection(
            name=self._collection_name(tenant),
            metadata={"hnsw:space": "cosine"},
        )

    def _existing_collection(self, tenant: str):
        """Resolve the tenant's collection for reading; None if never written."""
        name = self._collection_name(tenant)
        try:
            return self._client.get_collection(name=name)
        except (ValueError, ChromaError):
            # Older clients raise ValueError, newer ones NotFoundError
            return None

    def add_entries(
        self,
        tenant: str,
        entries: list[DocumentEntry],
        embeddings: list[list[float]],
    ) -> int:
        """Store entries in the tenant's collection."""
        collection = self._writable_collection(tenant)
        offset = collection.count()

        # ChromaDB requires string IDs and scalar metadata values, so page
        # labels are stored as a JSON-encoded list.
        ids = [
            f"{entry.file_id}_{offset + i}" for i, entry in enumerate(entries)
        ]
        metadatas = [
            {
                "file_id": entry.file_id,
                "question": entry.question,
                "pages": json.dumps(entry.pages),
            }
            for entry in entries
        ]

        collection.add(
            ids=ids,
            documents=[entry.answer for entry in entries],
            embeddings=embeddings,
            metadatas=metadatas,
        )

        logger.info(
            "Stored %d entries for tenant=%s in ChromaDB", len(ids), tenant,
        )
        return len(ids)

    async def search(
        self,
        query_embedding: list[float],
        tenant: str,
        limit: int = 3,
    ) -> list[RetrievalHit]:
        """Similarity search in the tenant's collection."""

        def _sync_search() -> list[RetrievalHit]:
            collection = self._existing_collection(tenant)
            if collection is None or collection.count() == 0:
                return []

            results = collection.query(
                query_embeddings=[query_embedding],
                n_results=min(limit, collection.count()),
                include=["documents", "metadatas", "distances"],
            )

            hits: list[RetrievalHit] = []
            if results and results["ids"] and results["ids"][0]:
                for i in range(len(results["ids"][0])):
                    distance = (
                        results["distances"][0][i]
                        if results["distances"]
                        else 0.0
                    )
                    hits.append(_hit_from_chroma(
                        document=results["documents"][0][i],
                        metadata=results["metadatas"][0][i],
                        score=round(1.0 - distance, 4),
                    ))
            return hits

        return await asyncio.to_thread(_sync_search)

    async def list_recent(
        self,
        tenant: str,
        limit: int = 3,
    ) -> list[RetrievalHit]:
        """Unranked listing of the tenant's collection."""

        def _sync_list() -> list[RetrievalHit]:
            collection = self._existing_collection(tenant)
            if collection is None:
                return []

            results = collection.get(
                limit=limit,
                include=["documents", "metadatas"],
            )
            return [
                _hit_from_chroma(document=document, metadata=metadata)
                for document, metadata in zip(
                    results["documents"] or [],
                    results["metadatas"] or [],
                    strict=True,
                )
            ]

        return await asyncio.to_thread(_sync_list)


# ---------------------------------------------------------------------------
# Implementation 2: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    pgvector-backed store using PostgreSQL.

    Uses the sync engine for add_entries (scripts) and the async engine for
    search/list_recent (query time).
    """

    def add_entries(
        self,
        tenant: str,
        entries: list[DocumentEntry],
        embeddings: list[list[float]],
    ) -> int:
        """Store entries as KnowledgeRecord rows owned by `tenant`."""
        with get_sync_session() as session:
            for entry, embedding in zip(entries, embeddings, strict=True):
                session.add(KnowledgeRecord(
                    tenant=tenant,
                    file_id=entry.file_id,
                    question=entry.question,
                    answer=entry.answer,
                    page_numbers=list(entry.pages),
                    embedding=embedding,
                ))

        logger.info(
            "Stored %d entries for tenant=%s in pgvector", len(entries), tenant,
        )
        return len(entries)

    async def search(
        self,
        query_embedding: list[float],
        tenant: str,
        limit: int = 3,
    ) -> list[RetrievalHit]:
        """
        Cosine similarity search using pgvector, restricted to `tenant`.

        pgvector's cosine_distance() is converted to similarity: 1 - distance.
        """
        distance = KnowledgeRecord.embedding.cosine_distance(query_embedding)
        stmt = (
            select(KnowledgeRecord, distance.label("distance"))
            .where(KnowledgeRecord.tenant == tenant)
            .where(KnowledgeRecord.embedding.is_not(None))
            .order_by(distance)
            .limit(limit)
        )

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug(
            "Vector search returned %d rows (limit=%d, tenant=%s)",
            len(rows), limit, tenant,
        )

        return [
            _hit_from_record(record, score=round(1.0 - dist, 4))
            for record, dist in rows
        ]

    async def list_recent(
        self,
        tenant: str,
        limit: int = 3,
    ) -> list[RetrievalHit]:
        """Most recently stored records of `tenant`, unranked."""
        stmt = (
            select(KnowledgeRecord)
            .where(KnowledgeRecord.tenant == tenant)
            .order_by(KnowledgeRecord.created_at.desc())
            .limit(limit)
        )

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            records = result.scalars().all()

        return [_hit_from_record(record) for record in records]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_vector_store(
    override_type: str | None = None,
) -> ChromaVectorStore | PgVectorStore:
    """
    Factory that returns the configured vector store backend.

    Reads `vectorstore_type` from settings:
    - "chroma" → ChromaVectorStore (default, no extra infra)
    - "pgvector" → PgVectorStore

    Args:
        override_type: Optional type override, ignoring the config setting.
    """
    store_type = override_type or settings.vectorstore_type

    if store_type == "pgvector":
        logger.info("Using pgvector vector store")
        return PgVectorStore()

    logger.info("Using ChromaDB vector store")
    return ChromaVectorStore()


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _hit_from_chroma(
    document: str | None,
    metadata: dict | None,
    score: float | None = None,
) -> RetrievalHit:
    """Map a ChromaDB document + metadata pair to a RetrievalHit."""
    metadata = metadata or {}
    raw_pages = metadata.get("pages") or "[]"
    return RetrievalHit(
        source_id=str(metadata.get("file_id", "")),
        answer=document or "",
        pages=[str(p) for p in json.loads(raw_pages)],
        question=str(metadata.get("question", "")),
        score=score,
    )


def _hit_from_record(
    record: KnowledgeRecord,
    score: float | None = None,
) -> RetrievalHit:
    """Map a KnowledgeRecord row to a RetrievalHit."""
    return RetrievalHit(
        source_id=record.file_id,
        answer=record.answer,
        pages=list(record.page_numbers or []),
        question=record.question,
        score=score,
    )
