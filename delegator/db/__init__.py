# =============================================================================
# Database Package
# =============================================================================
# Provides lazily-created SQLAlchemy engines, sessions, and ORM models for
# the pgvector backend.
#
# Key exports:
#   - async_session_factory / get_sync_session: session helpers
#   - Base, KnowledgeRecord: ORM models for tenant-scoped knowledge records
# =============================================================================
