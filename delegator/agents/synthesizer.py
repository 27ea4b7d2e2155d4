# =============================================================================
# Synthesizer — Worker Outputs → One Final Answer
# =============================================================================
#
# Builds a single prompt from whatever the workers gathered and makes one
# generation call:
#
#   You are a helpful assistant. Based on the following information, answer
#   the user's query: "<query>"
#
#   Document Information:
#   1- Page 3, 4: ...             ← only when retrieval ran
#
#   I have also generated a bar chart for "<description>".
#                                 ← only when the chart worker ran
#
# Any failure (no LLM, timeout, API error, empty reply) returns a fixed
# apology that tells the caller the structured data was still gathered.
# =============================================================================

from __future__ import annotations

import asyncio
import logging

from delegator.agents.chart import ChartResult
from delegator.agents.errors import WorkerFailure
from delegator.agents.retrieval import RetrievalResult
from delegator.config import settings
from delegator.services.llm import LLMProvider

logger = logging.getLogger(__name__)


SYNTHESIS_APOLOGY = (
    "I'm sorry, I encountered an error while synthesizing your answer. "
    "However, I have gathered the requested data."
)


class Synthesizer:
    """
    Combines chart and retrieval outputs into the final answer text.

    Args:
        llm: Generation LLM. None means every call returns the apology.
        timeout: Seconds to wait for the generation call.
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        timeout: float | None = None,
    ) -> None:
        self._llm = llm
        self._timeout = timeout or settings.collaborator_timeout_seconds

    async def run(
        self,
        query: str,
        chart_result: ChartResult | None = None,
        retrieval_result: RetrievalResult | None = None,
        chart_failure: WorkerFailure | None = None,
    ) -> str:
        """
        Generate the final answer for the query from the gathered context.

        Returns:
            Non-empty answer text; the apology on any generation failure.
        """
        if self._llm is None:
            logger.warning("Synthesizer has no LLM configured; returning apology")
            return SYNTHESIS_APOLOGY

        prompt = build_prompt(query, chart_result, retrieval_result, chart_failure)

        logger.info(
            "Synthesizing answer: retrieval=%s, chart=%s",
            retrieval_result is not None,
            chart_result is not None,
        )

        try:
            response = await asyncio.wait_for(
                self._llm.complete(
                    messages=[{"role": "user", "content": prompt}],
                    temperature=settings.llm_synthesis_temperature,
                ),
                timeout=self._timeout,
            )
        except Exception as e:
            logger.error("Synthesis failed: %r", e)
            return SYNTHESIS_APOLOGY

        answer = response.content.strip()
        if not answer:
            logger.warning("Synthesis returned empty text; returning apology")
            return SYNTHESIS_APOLOGY

        logger.info(
            "Synthesis complete: model=%s, tokens=%d+%d",
            response.model, response.input_tokens, response.output_tokens,
        )
        return answer


def build_prompt(
    query: str,
    chart_result: ChartResult | None = None,
    retrieval_result: RetrievalResult | None = None,
    chart_failure: WorkerFailure | None = None,
) -> str:
    """Assemble the synthesis prompt from the query and worker outputs."""
    prompt = (
        "You are a helpful assistant. Based on the following information, "
        f'answer the user\'s query: "{query}"\n\n'
    )

    if retrieval_result is not None:
        prompt += f"Document Information:\n{retrieval_result.answer}\n\n"

    if chart_result is not None:
        prompt += (
            f"I have also generated a {chart_result.kind.value} chart for "
            f'"{chart_result.description}".\n\n'
        )
    elif chart_failure is not None:
        prompt += "I was unable to generate the requested chart.\n\n"

    return prompt
