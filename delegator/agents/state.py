# =============================================================================
# Run State — What Flows Through the Orchestrator Graph
# =============================================================================
#
# One AgentState per run. Each graph node returns a partial update and
# LangGraph merges it. Keys written by the two concurrent workers are
# disjoint, except `payload`, which uses an additive reducer so both
# workers can append in the same superstep.
#
# Payload entries form a tagged union:
#   ChartPayload          (kind = "chart")
#   ReferenceListPayload  (kind = "references")
# =============================================================================

from __future__ import annotations

import enum
import operator
from dataclasses import dataclass, field
from typing import Annotated, ClassVar

from typing_extensions import TypedDict

from delegator.agents.chart import ChartResult
from delegator.agents.errors import WorkerFailure
from delegator.agents.references import Reference
from delegator.agents.retrieval import RetrievalResult
from delegator.agents.router import RoutingDecision


@dataclass(frozen=True)
class QueryContext:
    """The query and its tenant. Fixed for the whole run."""

    query: str
    tenant: str | None = None


class RunStage(str, enum.Enum):
    """States of the orchestration state machine."""

    START = "start"
    ROUTED = "routed"
    CHART_PENDING = "chart_pending"
    RAG_PENDING = "rag_pending"
    CHART_AND_RAG_PENDING = "chart_and_rag_pending"
    DIRECT_ANSWERED = "direct_answered"
    AGGREGATED = "aggregated"
    DONE = "done"


@dataclass(frozen=True)
class ChartPayload:
    """Payload entry carrying a generated chart."""

    chart: ChartResult
    kind: ClassVar[str] = "chart"


@dataclass(frozen=True)
class ReferenceListPayload:
    """Payload entry carrying the citations of one retrieval run."""

    references: list[Reference] = field(default_factory=list)
    kind: ClassVar[str] = "references"


Payload = ChartPayload | ReferenceListPayload


class AgentState(TypedDict, total=False):
    """
    State that flows through the orchestrator graph.

    Uses total=False so nodes only return the keys they update.
    """

    # --- Input (set by caller) ---
    context: QueryContext

    # --- Progress ---
    stage: RunStage

    # --- Set by the route node ---
    decision: RoutingDecision

    # --- Set by the worker nodes (disjoint keys) ---
    chart_result: ChartResult | None
    chart_failure: WorkerFailure | None
    retrieval_result: RetrievalResult | None
    retrieval_failure: WorkerFailure | None

    # --- Output ---
    answer: str
    payload: Annotated[list[Payload], operator.add]
