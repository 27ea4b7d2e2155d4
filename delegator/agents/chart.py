# =============================================================================
# Chart Worker — Query → Chart Specification
# =============================================================================
#
# Runs only when the router sets needs_chart. The worker:
#   1. Picks the chart kind from keywords in the query (line / pie /
#      doughnut, checked in that order; bar when none match)
#   2. Hands (kind, full query text) to the chart-spec generator
#
# The generator is sync and treated as a pure function; it runs in a worker
# thread under the collaborator timeout. Any error comes back as a
# WorkerFailure, never as an exception.
# =============================================================================

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from delegator.agents.errors import ChartGenerationError, WorkerFailure
from delegator.config import settings
from delegator.services.chartjs import ChartSpecGenerator

logger = logging.getLogger(__name__)


class ChartKind(str, enum.Enum):
    """Chart types the generator understands."""

    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    DOUGHNUT = "doughnut"


@dataclass
class ChartResult:
    """A generated chart: its kind, the opaque spec, and what it depicts."""

    kind: ChartKind
    spec: dict[str, Any] = field(default_factory=dict)
    description: str = ""


# Checked in order; the first kind whose keyword appears wins.
_KIND_KEYWORDS: list[tuple[str, ChartKind]] = [
    ("line", ChartKind.LINE),
    ("pie", ChartKind.PIE),
    ("doughnut", ChartKind.DOUGHNUT),
]


def detect_chart_kind(query: str) -> ChartKind:
    """Classify the chart subtype from the query text, defaulting to bar."""
    query_lower = query.lower()
    for keyword, kind in _KIND_KEYWORDS:
        if keyword in query_lower:
            return kind
    return ChartKind.BAR


class ChartWorker:
    """Produces a ChartResult for a query via an injected generator."""

    def __init__(
        self,
        generator: ChartSpecGenerator,
        timeout: float | None = None,
    ) -> None:
        self._generator = generator
        self._timeout = timeout or settings.collaborator_timeout_seconds

    async def run(self, query: str) -> ChartResult | WorkerFailure:
        """
        Generate a chart for the query.

        Returns:
            ChartResult on success, WorkerFailure(worker="chart") otherwise.
        """
        kind = detect_chart_kind(query)
        logger.info("Chart worker: kind=%s, query='%s'", kind.value, query[:80])

        try:
            spec = await self._generate(kind, query)
        except ChartGenerationError as e:
            logger.warning("Chart generation failed: %s", e)
            return WorkerFailure(
                worker="chart",
                reason="chart_generation_error",
                message=str(e),
            )

        return ChartResult(kind=kind, spec=spec, description=query)

    async def _generate(self, kind: ChartKind, description: str) -> dict:
        """Call the generator under the timeout, normalising its errors."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self._generator.generate, kind.value, description,
                ),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise ChartGenerationError(
                f"Chart generator timed out after {self._timeout}s"
            ) from e
        except Exception as e:
            raise ChartGenerationError(f"Chart generator error: {e}") from e
