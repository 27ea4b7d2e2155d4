# =============================================================================
# Agent Errors — Failure Types at Component Boundaries
# =============================================================================
#
# Exceptions are raised and caught INSIDE a component. What crosses a worker
# boundary is a WorkerFailure value, so the orchestrator branches on the
# returned type instead of relying on exception propagation.
#
#   ClassifierFailure    — router primary path (recovered by the fallback)
#   MissingTenant        — retrieval requested without a tenant
#   ChartGenerationError — chart generator raised or timed out
#   WorkerFailure        — the error variant of a worker's result
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass


class DelegatorError(Exception):
    """Base class for errors raised by the agents."""


class ClassifierFailure(DelegatorError):
    """The LLM classifier timed out, errored, or returned an invalid decision."""


class MissingTenant(DelegatorError):
    """Retrieval was requested but no tenant was supplied."""


class ChartGenerationError(DelegatorError):
    """The chart-spec generator failed for a description."""


@dataclass(frozen=True)
class WorkerFailure:
    """
    Returned by a worker in place of its result when it could not produce one.

    Attributes:
        worker: "chart" or "retrieval".
        reason: Short machine-readable cause, e.g. "missing_tenant".
        message: Human-readable detail for logs and API responses.
    """

    worker: str
    reason: str
    message: str
