# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for request body validation (automatic 422 errors) and
# for the OpenAPI documentation at /docs.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    """
    Request body for POST /ask and POST /ask/stream.

    Example:
        {
            "query": "Show me a chart of Q3 revenue and explain the growth drivers",
            "tenant": "company_a"
        }
    """

    # The natural language query to route
    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The natural-language query to answer",
        examples=["What are the system requirements mentioned in the documentation?"],
    )

    # Tenant whose documents retrieval may search.
    # If None, the server's configured default tenant is used; when that is
    # also unset, retrieval reports a missing tenant.
    tenant: str | None = Field(
        default=None,
        description="Tenant scope for document retrieval. Defaults to the server setting.",
        examples=["company_a"],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "query": "Create a bar chart showing quarterly revenue from Q1 to Q4",
                },
                {
                    "query": "What are the system requirements mentioned in the documentation?",
                    "tenant": "company_a",
                },
                {
                    "query": "What is 25 + 37?",
                },
            ]
        }
    )
