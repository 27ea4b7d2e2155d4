# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# Schema for the pgvector backend of the tenant-scoped knowledge store.
#
# ┌──────────────────────────────────────┐
# │  knowledge_records                   │
# ├──────────────────────────────────────┤
# │ id (PK)                              │
# │ tenant (text, indexed)               │
# │ file_id (text)                       │
# │ question (text)                      │
# │ answer (text)                        │
# │ page_numbers (text[])                │
# │ embedding (vector(N))                │
# │ created_at                           │
# └──────────────────────────────────────┘
#
# Every query filters on `tenant`; a record is never visible to any
# other tenant.
# =============================================================================

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from delegator.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class KnowledgeRecord(Base):
    """
    One question/answer passage from a source file, owned by one tenant.

    `page_numbers` are free-text labels ("3", "iv", "A-2"), so they are
    stored and sorted as strings.
    """

    __tablename__ = "knowledge_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tenant: Mapped[str] = mapped_column(String(255), nullable=False)

    # Source identifier used as the citation key
    file_id: Mapped[str] = mapped_column(String(255), nullable=False)

    question: Mapped[str] = mapped_column(Text, nullable=False, default="")
    answer: Mapped[str] = mapped_column(Text, nullable=False)

    page_numbers: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=list,
    )

    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<KnowledgeRecord(id={self.id}, tenant='{self.tenant}', "
            f"file_id='{self.file_id}')>"
        )


# HNSW index for approximate nearest neighbour search (cosine distance)
knowledge_embedding_idx = Index(
    "idx_knowledge_embedding_hnsw",
    KnowledgeRecord.embedding,
    postgresql_using="hnsw",
    postgresql_with={"m": 16, "ef_construction": 64},
    postgresql_ops={"embedding": "vector_cosine_ops"},
)

# B-tree index for the tenant filter applied to every query
knowledge_tenant_idx = Index(
    "idx_knowledge_tenant",
    KnowledgeRecord.tenant,
)
