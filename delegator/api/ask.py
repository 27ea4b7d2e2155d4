# =============================================================================
# Ask API — Query Delegation Endpoints
# =============================================================================
#
# POST /ask         → run the delegation graph, return answer + data
# POST /ask/stream  → same run, streamed as NDJSON run snapshots
#
# The heavy lifting happens in the agents package:
#   - router.py decides which workers run
#   - chart.py / retrieval.py do the work (concurrently when both run)
#   - synthesizer.py merges their outputs into one answer
#
# This module only validates requests, maps errors to status codes and
# maps the final AgentState to the response models.
# =============================================================================

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from delegator.agents.orchestrator import Orchestrator, get_orchestrator
from delegator.agents.state import AgentState, ChartPayload, Payload
from delegator.models.requests import AskRequest
from delegator.models.responses import (
    AskResponse,
    ChartPayloadModel,
    ReferenceListPayloadModel,
    ReferenceModel,
    RoutingModel,
    RunSnapshot,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Query Delegation"])


# ---------------------------------------------------------------------------
# POST /ask — Answer a query
# ---------------------------------------------------------------------------


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Answer a query with charts and cited documents",
    description=(
        "Routes the query to the chart worker, the tenant-scoped retrieval "
        "worker, both (in parallel), or neither, then synthesizes one answer. "
        "Simple queries such as arithmetic are answered directly."
    ),
)
async def ask_endpoint(
    request: AskRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AskResponse:
    """
    Run the delegation graph for one query.

    Error handling:
    - Configuration error → 503 Service Unavailable
    - Anything else escaping the graph → 502 Bad Gateway
    - Worker or LLM failures inside the graph → 200 with degraded answer
    """
    logger.info(
        "Ask request: query='%s', tenant=%s", request.query[:80], request.tenant,
    )

    start_time = time.monotonic()

    try:
        result = await orchestrator.ask(request.query, tenant=request.tenant)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
    except Exception as e:
        logger.exception("Delegation graph failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Upstream service error: {e}",
        ) from e

    latency_ms = int((time.monotonic() - start_time) * 1000)

    decision = result.get("decision")
    routing = None
    if decision is not None:
        routing = RoutingModel(
            needs_chart=decision.needs_chart,
            needs_rag=decision.needs_rag,
            direct_answer=decision.direct_answer is not None,
            source=decision.source,
        )

    return AskResponse(
        answer=result.get("answer", ""),
        data=to_payload_models(result.get("payload", [])),
        query=request.query,
        tenant=result["context"].tenant,
        routing=routing,
        latency_ms=latency_ms,
    )


# ---------------------------------------------------------------------------
# POST /ask/stream — Stream run snapshots
# ---------------------------------------------------------------------------


@router.post(
    "/ask/stream",
    summary="Answer a query, streaming each run state",
    description=(
        "Emits one JSON object per line (application/x-ndjson) after every "
        "state transition. The last line has stage 'done' and the final answer."
    ),
)
async def ask_stream_endpoint(
    request: AskRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    logger.info(
        "Ask stream request: query='%s', tenant=%s",
        request.query[:80], request.tenant,
    )

    return StreamingResponse(
        _stream_snapshots(orchestrator, request),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache"},
    )


async def _stream_snapshots(
    orchestrator: Orchestrator, request: AskRequest,
) -> AsyncIterator[str]:
    # Headers are already sent, so a failure becomes a final error line.
    try:
        async for state in orchestrator.stream(request.query, tenant=request.tenant):
            yield to_snapshot(state).model_dump_json() + "\n"
    except Exception as e:
        logger.exception("Streamed delegation failed: %s", e)
        yield json.dumps({"stage": "error", "error": str(e)}) + "\n"


# ---------------------------------------------------------------------------
# State → Response Mapping
# ---------------------------------------------------------------------------


def to_payload_models(
    payload: list[Payload],
) -> list[ChartPayloadModel | ReferenceListPayloadModel]:
    """Convert payload dataclasses to their API models, preserving order."""
    models: list[ChartPayloadModel | ReferenceListPayloadModel] = []
    for entry in payload:
        if isinstance(entry, ChartPayload):
            models.append(ChartPayloadModel(
                chart_type=entry.chart.kind.value,
                chart_config=entry.chart.spec,
                description=entry.chart.description,
            ))
        else:
            models.append(ReferenceListPayloadModel(
                references=[
                    ReferenceModel(file_id=ref.source_id, pages=ref.pages)
                    for ref in entry.references
                ],
            ))
    return models


def to_snapshot(state: AgentState) -> RunSnapshot:
    stage = state.get("stage")
    return RunSnapshot(
        stage=stage.value if stage is not None else "start",
        answer=state.get("answer", ""),
        data=to_payload_models(state.get("payload", [])),
    )
