# =============================================================================
# Router — Query → {needs_chart, needs_rag, direct_answer}
# =============================================================================
#
# Two paths, tried in order:
#
# 1. CLASSIFIER — the LLM reads a fixed decision prompt and replies with a
#    JSON object. The reply is validated strictly (both flags must be real
#    booleans). One attempt, no retry.
# 2. FALLBACK — deterministic keyword/pattern rules on the lower-cased
#    query. Used whenever the classifier is absent, times out, errors, or
#    returns anything that fails validation.
#
# decide() never raises. The path taken is logged and recorded on the
# decision as `source`.
#
# FALLBACK RULES (order matters):
#   needs_chart  ← chart keyword anywhere in the query
#   arithmetic   ← first "<digits> <op> <digits>" with op in + - * /
#   needs_rag    ← (question / document-reference / explain phrasing)
#                  AND NOT arithmetic
#   direct_answer← "The answer is {a op b}." only when arithmetic matched
#                  and neither flag is set
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

from delegator.agents.errors import ClassifierFailure
from delegator.config import settings
from delegator.services.llm import LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------

SOURCE_CLASSIFIER = "classifier"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class RoutingDecision:
    """Which workers a query needs, or the answer if none are needed."""

    needs_chart: bool
    needs_rag: bool
    direct_answer: str | None = None
    source: str = SOURCE_FALLBACK  # "classifier" or "fallback"


class ClassifierVerdict(BaseModel):
    """Strict schema for the classifier's JSON reply."""

    needs_chart: StrictBool = Field(alias="needsChart")
    needs_rag: StrictBool = Field(alias="needsRAG")
    direct_answer: str | None = Field(default=None, alias="directAnswer")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Classifier Prompt
# ---------------------------------------------------------------------------

_DECISION_PROMPT = """Task: decide which tools this query needs. Reply with \
ONLY a JSON object.

Query: "{query}"

needsChart (boolean)
- true when the query asks to create, generate, show, display, visualize, \
plot or draw a chart, graph, diagram or other visual representation
- false otherwise

needsRAG (boolean)
- true when the query asks what / why / how / when / where / who, or asks \
for information, explanation, details or a summary from documents
- false when the query ONLY asks for a chart, or is a simple calculation

directAnswer (string or null)
- a short answer for queries that need no tool: greetings, basic \
arithmetic, simple facts, general knowledge
- null when needsChart or needsRAG is true, or when the query is better \
answered with gathered context

Examples:
"Create a bar chart of quarterly sales"
-> {{"needsChart": true, "needsRAG": false, "directAnswer": null}}
"What are the system requirements in the documentation?"
-> {{"needsChart": false, "needsRAG": true, "directAnswer": null}}
"Show me a revenue chart and explain the trends"
-> {{"needsChart": true, "needsRAG": true, "directAnswer": null}}
"Calculate 15 + 27"
-> {{"needsChart": false, "needsRAG": false, "directAnswer": "42"}}
"What is the capital of France?"
-> {{"needsChart": false, "needsRAG": false, "directAnswer": "Paris"}}
"What does the contract say about termination?"
-> {{"needsChart": false, "needsRAG": true, "directAnswer": null}}

Return exactly this structure:
{{"needsChart": boolean, "needsRAG": boolean, "directAnswer": string | null}}
"""

_CODE_FENCE = re.compile(r"```(?:json)?\s*")


# ---------------------------------------------------------------------------
# Fallback Rules
# ---------------------------------------------------------------------------

_CHART_PATTERN = re.compile(
    r"chart|graph|visuali[sz]e|plot|bar|line|pie|doughnut"
    r"|show\s+me\s+a\s+(chart|graph)"
)
# ASCII digits only.
_MATH_PATTERN = re.compile(r"(\d+)\s*[+\-*/]\s*(\d+)", re.ASCII)
_OPERATOR = re.compile(r"[+\-*/]")
_QUESTION_PATTERN = re.compile(
    r"(what\s+(is|are|was|were)|how\s+(do|does|did)|tell\s+me\s+about)\s+.*"
    r"(system|requirement|document|policy|authentication|safety|concern"
    r"|driver|cost)"
)
_DOCUMENT_PATTERN = re.compile(
    r"mentioned\s+in|from\s+the\s+document|in\s+the\s+documentation"
)
_EXPLAIN_PATTERN = re.compile(r"and\s+explain|explain\s+the")


def fallback_decision(query: str) -> RoutingDecision:
    """
    Route a query with the deterministic keyword/pattern rules.

    Pure function of the query text: the same text always yields the same
    decision.
    """
    text = query.lower()

    needs_chart = bool(_CHART_PATTERN.search(text))
    math_match = _MATH_PATTERN.search(text)
    needs_rag = bool(
        _QUESTION_PATTERN.search(text)
        or _DOCUMENT_PATTERN.search(text)
        or _EXPLAIN_PATTERN.search(text)
    ) and math_match is None

    direct_answer = None
    if math_match and not needs_chart and not needs_rag:
        result = _evaluate(math_match)
        direct_answer = f"The answer is {format_number(result)}."

    return RoutingDecision(
        needs_chart=needs_chart,
        needs_rag=needs_rag,
        direct_answer=direct_answer,
        source=SOURCE_FALLBACK,
    )


def _evaluate(match: re.Match) -> float:
    """
    Apply the matched operator to the two matched integers as floats.

    Division by zero follows IEEE-754 rather than raising: n/0 is infinity
    and 0/0 is NaN.
    """
    left = float(match.group(1))
    right = float(match.group(2))
    operator = _OPERATOR.search(match.group(0)).group(0)

    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if right == 0:
        return math.nan if left == 0 else math.copysign(math.inf, left)
    return left / right


def format_number(value: float) -> str:
    """
    Render a float the way JavaScript's Number#toString does.

    Whole numbers drop the fractional part (42.0 → "42"); non-finite values
    become "Infinity", "-Infinity" or "NaN". Exponent notation is used only
    below 1e-6 or from 1e21 up, with an unpadded signed exponent
    (1e-7, 1.5e+21).
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    # repr() gives the shortest round-tripping digits; only the layout differs.
    text = repr(value)
    if "e" not in text:
        return text

    mantissa, exponent = text.split("e")
    power = int(exponent)
    if -7 < power < 21:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class Router:
    """
    Routes a query with the LLM classifier, falling back to fixed rules.

    Args:
        classifier: LLM used for the primary path. None means every query
            takes the fallback path.
        timeout: Seconds to wait for the classifier before falling back.
    """

    def __init__(
        self,
        classifier: LLMProvider | None = None,
        timeout: float | None = None,
    ) -> None:
        self._classifier = classifier
        self._timeout = timeout or settings.collaborator_timeout_seconds

    async def decide(self, query: str) -> RoutingDecision:
        """Produce the routing decision for a query. Never raises."""
        if self._classifier is not None and query.strip():
            try:
                decision = await self._classify(query)
            except ClassifierFailure as e:
                logger.warning(
                    "[LLM Routing Failed] Using keyword fallback: %s", e,
                )
            else:
                _log_decision(decision)
                return decision

        decision = fallback_decision(query)
        _log_decision(decision)
        return decision

    async def _classify(self, query: str) -> RoutingDecision:
        """Ask the classifier LLM; raise ClassifierFailure on any problem."""
        prompt = _DECISION_PROMPT.format(query=query)

        try:
            response = await asyncio.wait_for(
                self._classifier.complete(
                    messages=[{"role": "user", "content": prompt}],
                    temperature=settings.llm_routing_temperature,
                    max_tokens=settings.routing_max_tokens,
                ),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise ClassifierFailure(
                f"classifier timed out after {self._timeout}s"
            ) from e
        except Exception as e:
            raise ClassifierFailure(f"classifier error: {e}") from e

        return parse_verdict(response.content)


def parse_verdict(content: str) -> RoutingDecision:
    """
    Parse and validate the classifier's reply.

    Markdown code fences around the JSON are tolerated. A blank
    directAnswer counts as no direct answer.

    Raises:
        ClassifierFailure: If the reply is not valid JSON or either flag is
            missing or not a boolean.
    """
    cleaned = _CODE_FENCE.sub("", content).strip()

    try:
        verdict = ClassifierVerdict.model_validate_json(cleaned)
    except ValidationError as e:
        raise ClassifierFailure(
            f"invalid decision structure: {e.error_count()} error(s)"
        ) from e

    direct_answer = (verdict.direct_answer or "").strip() or None
    return RoutingDecision(
        needs_chart=verdict.needs_chart,
        needs_rag=verdict.needs_rag,
        direct_answer=direct_answer,
        source=SOURCE_CLASSIFIER,
    )


def _log_decision(decision: RoutingDecision) -> None:
    label = "LLM Routing" if decision.source == SOURCE_CLASSIFIER else "Keyword Fallback"
    logger.info(
        "[%s] Chart: %s, RAG: %s, Direct: %s",
        label,
        decision.needs_chart,
        decision.needs_rag,
        decision.direct_answer is not None,
    )
