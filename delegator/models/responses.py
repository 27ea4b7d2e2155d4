# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API.
#
# The `data` list is a tagged union discriminated on `kind`:
#   {"kind": "chart", "chart_type": "bar", "chart_config": {...}, ...}
#   {"kind": "references", "references": [{"file_id": ..., "pages": [...]}]}
# Clients switch on `kind` to decide how to render each entry.
# =============================================================================

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


# ---------------------------------------------------------------------------
# Structured Payload
# ---------------------------------------------------------------------------


class ChartPayloadModel(BaseModel):
    """A generated chart, ready to hand to Chart.js on the client."""

    kind: Literal["chart"] = "chart"
    chart_type: str = Field(description="bar, line, pie or doughnut")
    chart_config: dict[str, Any] = Field(description="Chart.js configuration object")
    description: str


class ReferenceModel(BaseModel):
    """One cited source file and the pages cited from it."""

    file_id: str
    pages: list[str] = Field(default_factory=list)


class ReferenceListPayloadModel(BaseModel):
    """The deduplicated citations of one retrieval run."""

    kind: Literal["references"] = "references"
    references: list[ReferenceModel] = Field(default_factory=list)


PayloadModel = Annotated[
    ChartPayloadModel | ReferenceListPayloadModel,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Ask Responses
# ---------------------------------------------------------------------------


class RoutingModel(BaseModel):
    """How the router classified the query."""

    needs_chart: bool
    needs_rag: bool
    direct_answer: bool = Field(
        description="True when the router answered directly and no worker ran",
    )
    source: str = Field(description="'classifier' or 'fallback'")


class AskResponse(BaseModel):
    """
    Response for POST /ask — the final answer plus structured data.

    `data` is empty when the query was answered directly or when every
    worker that ran failed.
    """

    answer: str = Field(description="Final answer text")
    data: list[PayloadModel] = Field(
        default_factory=list,
        description="Charts and reference lists gathered during the run",
    )
    query: str = Field(description="The original query (echoed back)")
    tenant: str | None = Field(description="Tenant the run was scoped to")
    routing: RoutingModel | None = Field(
        default=None, description="Routing decision for this run",
    )
    latency_ms: int = Field(description="Wall-clock time for the whole run")


class RunSnapshot(BaseModel):
    """One line of the POST /ask/stream NDJSON body."""

    stage: str
    answer: str = ""
    data: list[PayloadModel] = Field(default_factory=list)
