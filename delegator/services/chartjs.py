# =============================================================================
# Chart.js Config Generator — Description → Chart Specification
# =============================================================================
#
# Turns a chart kind plus a natural-language description into a Chart.js
# configuration object. The series are illustrative: recognised topics
# (revenue, growth, market share) get canned data, anything else gets
# random values. Real data plumbing is outside this service.
#
# The chart worker treats this as a pure function behind the
# ChartSpecGenerator protocol, so any other generator can be swapped in.
# =============================================================================

from __future__ import annotations

import logging
import random
from typing import Any, Protocol

from delegator.config import settings

logger = logging.getLogger(__name__)


class ChartSpecGenerator(Protocol):
    """Anything that maps (kind, description) to a chart configuration."""

    def generate(self, kind: str, description: str) -> dict[str, Any]:
        ...


_SEGMENT_COLOURS = ["#FF6384", "#36A2EB", "#FFCE56", "#4BC0C0"]
_PRIMARY_COLOUR = "#36A2EB"


class ChartJSGenerator:
    """
    Generates Chart.js configs with illustrative data.

    Args:
        data_points: Number of points for descriptions with no canned series.
        rng: Random source for those points; pass a seeded Random for
            reproducible output.
    """

    def __init__(
        self,
        data_points: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._data_points = data_points or settings.chart_data_points
        self._rng = rng or random.Random()

    def generate(self, kind: str, description: str) -> dict[str, Any]:
        """Build the Chart.js config for a `kind` chart of `description`."""
        labels, data, dataset_label = self._series_for(description.lower())

        background: list[str] | str = (
            _SEGMENT_COLOURS if kind in ("pie", "doughnut") else _PRIMARY_COLOUR
        )

        logger.debug(
            "Generated %s chart config with %d points", kind, len(labels),
        )

        return {
            "type": kind,
            "data": {
                "labels": labels,
                "datasets": [{
                    "label": dataset_label,
                    "data": data,
                    "backgroundColor": background,
                    "borderColor": _PRIMARY_COLOUR,
                    "borderWidth": 1,
                }],
            },
            "options": {
                "responsive": True,
                "plugins": {
                    "legend": {"position": "top"},
                    "title": {"display": True, "text": description},
                },
            },
        }

    def _series_for(
        self, description: str,
    ) -> tuple[list[str], list[int], str]:
        """Pick labels, values and a dataset label for the description."""
        if "revenue" in description or "quarterly" in description:
            return (
                ["Q1", "Q2", "Q3", "Q4"],
                [120000, 150000, 180000, 200000],
                "Revenue ($)",
            )
        if "growth" in description or "trend" in description:
            return (
                ["Jan", "Feb", "Mar", "Apr", "May", "Jun"],
                [10, 25, 45, 30, 55, 78],
                "Growth (%)",
            )
        if "share" in description or "market" in description:
            return (
                ["Product A", "Product B", "Product C", "Others"],
                [40, 30, 20, 10],
                "Market Share (%)",
            )

        labels = [f"Label {i + 1}" for i in range(self._data_points)]
        data = [self._rng.randint(0, 99) for _ in range(self._data_points)]
        return labels, data, "Value"
