# =============================================================================
# Multi-Agent Delegator
# =============================================================================
# Routes a natural-language query to specialised workers (tenant-scoped
# document retrieval, chart-config generation) and synthesises one answer,
# degrading gracefully when any upstream LLM or store fails.
#
# Package structure:
#   delegator/
#   ├── agents/       → LangGraph orchestration: router, workers, synthesizer
#   ├── api/          → FastAPI route handlers (ask, streamed ask)
#   ├── db/           → Database engine, session, and ORM models (pgvector)
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Collaborator adapters (LLM, embeddings, vector
#                        store, Chart.js generator, seed data)
# =============================================================================
