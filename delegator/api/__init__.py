# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - ask.py: Query delegation endpoint, plus a streamed variant that emits
#     one NDJSON run snapshot per state transition
# =============================================================================
