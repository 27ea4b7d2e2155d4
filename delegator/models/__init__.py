# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Defines request/response schemas for the API.
# These are SEPARATE from the agent dataclasses (delegator/agents/) and the
# database models (delegator/db/models.py); the API layer maps between them.
# =============================================================================
