# =============================================================================
# Services Package — Collaborator Adapters
# =============================================================================
# Concrete implementations of the external collaborators the agents use:
#   - llm.py: Multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#     for routing classification and answer synthesis
#   - embedder.py: OpenAI-compatible embedding generation
#   - vectorstore.py: Tenant-scoped vector store protocol (Chroma, pgvector)
#   - chartjs.py: Chart.js config generator
#   - seed.py: Demo knowledge base for three tenants
# =============================================================================
