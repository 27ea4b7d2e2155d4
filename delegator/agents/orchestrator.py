# =============================================================================
# LangGraph Orchestrator — Router → Workers → Synthesizer
# =============================================================================
#
# Wires the router, the two workers and the synthesizer into a LangGraph
# StateGraph. Collaborators are passed into the Orchestrator constructor;
# the graph's nodes are bound methods that close over them.
#
# GRAPH TOPOLOGY:
#
#                                  ┌──▶ chart ─────┐
#   START ──▶ route ──▶ dispatch ──┼──▶ retrieve ──┼──▶ aggregate ──▶ synthesize ──┐
#                          │       └───────────────┘                               │
#                          │        (both, in parallel, when both are needed)      ▼
#                          └──────── direct answer ─────────────────────────▶ finalize ──▶ END
#
# STATES (AgentState.stage):
#   start → routed → chart_pending | rag_pending | chart_and_rag_pending
#                  | direct_answered → aggregated → done
#
# `route` records the decision (routed); `dispatch` moves to the pending or
# direct state. A decision needing no worker stays routed into aggregate.
#
# CONCURRENCY:
# When both workers are needed the dispatch node fans out to chart and
# retrieve in the same superstep; LangGraph runs them concurrently and only
# schedules aggregate once both have returned. Worker nodes never raise
# (they store a result or a WorkerFailure), so one worker's failure cannot
# cancel the other.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from langgraph.graph import END, START, StateGraph

from delegator.agents.chart import ChartResult, ChartWorker
from delegator.agents.errors import WorkerFailure
from delegator.agents.retrieval import RetrievalResult, RetrievalWorker
from delegator.agents.router import Router, RoutingDecision
from delegator.agents.state import (
    AgentState,
    ChartPayload,
    QueryContext,
    ReferenceListPayload,
    RunStage,
)
from delegator.agents.synthesizer import Synthesizer
from delegator.config import settings

logger = logging.getLogger(__name__)


RETRIEVAL_PLACEHOLDER_ANSWER = (
    "I encountered an error while searching for document information."
)


class Orchestrator:
    """
    Runs one query through the delegation graph.

    The compiled graph is built once per Orchestrator and shares no mutable
    state between runs, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        router: Router,
        chart_worker: ChartWorker,
        retrieval_worker: RetrievalWorker,
        synthesizer: Synthesizer,
        default_tenant: str | None = None,
    ) -> None:
        self._router = router
        self._chart_worker = chart_worker
        self._retrieval_worker = retrieval_worker
        self._synthesizer = synthesizer
        self._default_tenant = default_tenant
        self.graph = self._build_graph()

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def ask(self, query: str, tenant: str | None = None) -> AgentState:
        """
        Run the graph to completion and return the terminal state.

        Args:
            query: The user's natural-language query.
            tenant: Tenant whose documents retrieval may search. Falls back
                to the configured default tenant.

        Returns:
            The final AgentState (stage == done) with answer and payload.
        """
        initial_state = self._initial_state(query, tenant)
        logger.info(
            "Invoking delegation graph: query='%s', tenant=%s",
            query[:80], initial_state["context"].tenant,
        )

        result = await self.graph.ainvoke(initial_state)

        logger.info(
            "Delegation graph complete: payload=%d, answer_chars=%d",
            len(result.get("payload", [])),
            len(result.get("answer", "")),
        )
        return result

    async def stream(
        self, query: str, tenant: str | None = None,
    ) -> AsyncIterator[AgentState]:
        """
        Run the graph, yielding the full run state after every transition.

        The first emission is the initial state (stage == start) and the
        last is the terminal state (stage == done).
        """
        initial_state = self._initial_state(query, tenant)
        async for state in self.graph.astream(initial_state, stream_mode="values"):
            yield state

    # -----------------------------------------------------------------------
    # Graph Assembly
    # -----------------------------------------------------------------------

    def _build_graph(self):
        builder = StateGraph(AgentState)
        builder.add_node("route", self._route_node)
        builder.add_node("dispatch", self._dispatch_node)
        builder.add_node("chart", self._chart_node)
        builder.add_node("retrieve", self._retrieve_node)
        builder.add_node("aggregate", self._aggregate_node)
        builder.add_node("synthesize", self._synthesize_node)
        builder.add_node("finalize", self._finalize_node)

        builder.add_edge(START, "route")
        builder.add_edge("route", "dispatch")
        builder.add_conditional_edges(
            "dispatch",
            _dispatch,
            ["chart", "retrieve", "aggregate", "finalize"],
        )
        builder.add_edge("chart", "aggregate")
        builder.add_edge("retrieve", "aggregate")
        builder.add_edge("aggregate", "synthesize")
        builder.add_edge("synthesize", "finalize")
        builder.add_edge("finalize", END)

        return builder.compile()

    def _initial_state(self, query: str, tenant: str | None) -> AgentState:
        return {
            "context": QueryContext(
                query=query, tenant=tenant or self._default_tenant,
            ),
            "stage": RunStage.START,
            "answer": "",
            "payload": [],
        }

    # -----------------------------------------------------------------------
    # Node Functions
    # -----------------------------------------------------------------------
    # Each node receives the full state and returns a partial update dict.
    # -----------------------------------------------------------------------

    async def _route_node(self, state: AgentState) -> dict:
        """Ask the router which workers this query needs."""
        decision = await self._router.decide(state["context"].query)
        return {"decision": decision, "stage": RunStage.ROUTED}

    async def _dispatch_node(self, state: AgentState) -> dict:
        """Move to the decision's pending state; store a direct answer."""
        decision = state["decision"]
        stage = _stage_after_routing(decision)

        logger.info(
            "Routed via %s → %s", decision.source, stage.value,
        )

        if stage == RunStage.ROUTED:
            return {}
        update: dict = {"stage": stage}
        if decision.direct_answer:
            update["answer"] = decision.direct_answer
        return update

    async def _chart_node(self, state: AgentState) -> dict:
        """Run the chart worker; record its result or its failure."""
        try:
            outcome = await self._chart_worker.run(state["context"].query)
        except Exception as e:
            logger.exception("Chart worker raised unexpectedly: %s", e)
            outcome = WorkerFailure(
                worker="chart", reason="unexpected_error", message=str(e),
            )

        if isinstance(outcome, WorkerFailure):
            return {"chart_result": None, "chart_failure": outcome}

        return {
            "chart_result": outcome,
            "payload": [ChartPayload(chart=outcome)],
        }

    async def _retrieve_node(self, state: AgentState) -> dict:
        """Run the retrieval worker; substitute a placeholder on failure."""
        context = state["context"]
        outcome = await self._retrieval_worker.run(context.query, context.tenant)

        if isinstance(outcome, WorkerFailure):
            logger.warning(
                "Retrieval worker failed (%s): %s", outcome.reason, outcome.message,
            )
            return {
                "retrieval_result": RetrievalResult(
                    answer=RETRIEVAL_PLACEHOLDER_ANSWER,
                    error=outcome.message,
                ),
                "retrieval_failure": outcome,
            }

        update: dict = {"retrieval_result": outcome}
        if outcome.error is None:
            update["payload"] = [
                ReferenceListPayload(references=list(outcome.references)),
            ]
        return update

    async def _aggregate_node(self, state: AgentState) -> dict:
        """Join point: every dispatched worker has settled."""
        logger.info(
            "Aggregated: chart=%s, retrieval=%s, payload=%d",
            _outcome_label(state.get("chart_result"), state.get("chart_failure")),
            _outcome_label(
                state.get("retrieval_result"), state.get("retrieval_failure"),
            ),
            len(state.get("payload", [])),
        )
        return {"stage": RunStage.AGGREGATED}

    async def _synthesize_node(self, state: AgentState) -> dict:
        """Produce the final answer unless one already exists."""
        if state.get("answer"):
            return {}

        answer = await self._synthesizer.run(
            state["context"].query,
            chart_result=state.get("chart_result"),
            retrieval_result=state.get("retrieval_result"),
            chart_failure=state.get("chart_failure"),
        )
        return {"answer": answer}

    async def _finalize_node(self, state: AgentState) -> dict:
        return {"stage": RunStage.DONE}


# ---------------------------------------------------------------------------
# Routing Helpers
# ---------------------------------------------------------------------------


def _stage_after_routing(decision: RoutingDecision) -> RunStage:
    """Map a routing decision to the state the run moves into."""
    if decision.direct_answer:
        return RunStage.DIRECT_ANSWERED
    if decision.needs_chart and decision.needs_rag:
        return RunStage.CHART_AND_RAG_PENDING
    if decision.needs_chart:
        return RunStage.CHART_PENDING
    if decision.needs_rag:
        return RunStage.RAG_PENDING
    return RunStage.ROUTED


def _dispatch(state: AgentState) -> str | list[str]:
    """Conditional edge out of the dispatch node."""
    stage = state["stage"]
    if stage == RunStage.DIRECT_ANSWERED:
        return "finalize"
    if stage == RunStage.CHART_AND_RAG_PENDING:
        return ["chart", "retrieve"]
    if stage == RunStage.CHART_PENDING:
        return "chart"
    if stage == RunStage.RAG_PENDING:
        return "retrieve"
    return "aggregate"


def _outcome_label(
    result: ChartResult | RetrievalResult | None,
    failure: WorkerFailure | None,
) -> str:
    if failure is not None:
        return f"failed({failure.reason})"
    if result is None:
        return "skipped"
    return "ok"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """
    Lazy singleton wired from settings.

    A missing LLM key is not fatal: the router runs on its keyword fallback
    and the synthesizer answers with its apology text.
    """
    global _orchestrator
    if _orchestrator is None:
        from delegator.services.chartjs import ChartJSGenerator
        from delegator.services.embedder import OpenAIEmbedder
        from delegator.services.llm import get_llm_provider
        from delegator.services.vectorstore import get_vector_store

        try:
            llm = get_llm_provider()
        except ValueError as e:
            logger.warning("LLM provider unavailable, running degraded: %s", e)
            llm = None

        classifier = llm if settings.router_use_classifier else None

        _orchestrator = Orchestrator(
            router=Router(classifier=classifier),
            chart_worker=ChartWorker(generator=ChartJSGenerator()),
            retrieval_worker=RetrievalWorker(
                embedder=OpenAIEmbedder(), store=get_vector_store(),
            ),
            synthesizer=Synthesizer(llm=llm),
            default_tenant=settings.default_tenant,
        )
    return _orchestrator
