# =============================================================================
# Agents Package — LangGraph Delegation
# =============================================================================
# Routes one query to the workers it needs and merges their outputs:
#   - router.py: LLM classifier with a deterministic keyword fallback
#   - chart.py: chart-kind detection + Chart.js spec generation worker
#   - retrieval.py: tenant-scoped search worker with cited passages
#   - references.py: per-source citation deduplication
#   - synthesizer.py: one LLM call that merges worker outputs
#   - orchestrator.py: LangGraph state machine tying them together
#   - state.py / errors.py: run state, payload union, failure types
#
# Flow: route → {chart, retrieve} (concurrent) → aggregate → synthesize
# =============================================================================
