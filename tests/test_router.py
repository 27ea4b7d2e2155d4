# =============================================================================
# Unit Tests — Router
# =============================================================================
#
# Tests the keyword fallback rules and the LLM classifier path without API
# keys. The classifier is an AsyncMock returning canned LLMResponses.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from delegator.agents.errors import ClassifierFailure
from delegator.agents.router import (
    SOURCE_CLASSIFIER,
    SOURCE_FALLBACK,
    Router,
    RoutingDecision,
    fallback_decision,
    format_number,
    parse_verdict,
)
from delegator.config import settings
from delegator.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _classifier_replying(content: str) -> AsyncMock:
    classifier = AsyncMock()
    classifier.complete.return_value = LLMResponse(
        content=content, model="test-model", input_tokens=50, output_tokens=20,
    )
    return classifier


# ---------------------------------------------------------------------------
# Test: Keyword Fallback
# ---------------------------------------------------------------------------


class TestFallbackDecision:
    """Tests for the deterministic keyword/pattern rules."""

    def test_chart_only_query(self):
        decision = fallback_decision(
            "Create a bar chart showing quarterly revenue from Q1 to Q4"
        )
        assert decision.needs_chart is True
        assert decision.needs_rag is False
        assert decision.direct_answer is None
        assert decision.source == SOURCE_FALLBACK

    def test_document_question_needs_rag(self):
        decision = fallback_decision(
            "What are the system requirements mentioned in the documentation?"
        )
        assert decision.needs_chart is False
        assert decision.needs_rag is True
        assert decision.direct_answer is None

    def test_chart_and_explain_needs_both(self):
        decision = fallback_decision(
            "Show me a chart of Q3 revenue and explain the growth drivers"
        )
        assert decision.needs_chart is True
        assert decision.needs_rag is True
        assert decision.direct_answer is None

    def test_arithmetic_is_answered_directly(self):
        decision = fallback_decision("What is 25 + 37?")
        assert decision.needs_chart is False
        assert decision.needs_rag is False
        assert decision.direct_answer == "The answer is 62."

    def test_subtraction_and_multiplication(self):
        assert fallback_decision("5 - 9").direct_answer == "The answer is -4."
        assert fallback_decision("6*7").direct_answer == "The answer is 42."

    def test_fractional_division(self):
        assert fallback_decision("7 / 2").direct_answer == "The answer is 3.5."

    def test_division_by_zero_is_infinity(self):
        decision = fallback_decision("what is 10 / 0")
        assert decision.direct_answer == "The answer is Infinity."

    def test_zero_by_zero_is_nan(self):
        decision = fallback_decision("0 / 0")
        assert decision.direct_answer == "The answer is NaN."

    def test_arithmetic_suppresses_rag(self):
        decision = fallback_decision("explain the result of 2 + 2")
        assert decision.needs_rag is False
        assert decision.direct_answer == "The answer is 4."

    def test_chart_with_arithmetic_has_no_direct_answer(self):
        decision = fallback_decision("plot 2 + 2")
        assert decision.needs_chart is True
        assert decision.direct_answer is None

    def test_non_ascii_digits_not_arithmetic(self):
        decision = fallback_decision("what is \u0662 + \u0663")
        assert decision.direct_answer is None

    def test_tiny_quotient_uses_short_exponent(self):
        decision = fallback_decision("1 / 10000000")
        assert decision.direct_answer == "The answer is 1e-7."

    def test_uses_first_arithmetic_match(self):
        decision = fallback_decision("1 + 1 and then 5 * 5")
        assert decision.direct_answer == "The answer is 2."

    def test_matching_is_case_insensitive(self):
        assert fallback_decision("DRAW A PIE").needs_chart is True
        assert fallback_decision("Tell me about the Safety policy").needs_rag is True

    def test_small_talk_needs_nothing(self):
        decision = fallback_decision("hello there")
        assert decision == RoutingDecision(
            needs_chart=False, needs_rag=False, direct_answer=None,
        )

    def test_deterministic(self):
        query = "Show me a chart of Q3 revenue and explain the growth drivers"
        assert fallback_decision(query) == fallback_decision(query)


class TestFormatNumber:
    """Tests for JS-style number rendering."""

    def test_whole_number_drops_fraction(self):
        assert format_number(42.0) == "42"

    def test_negative_whole_number(self):
        assert format_number(-4.0) == "-4"

    def test_fraction_kept(self):
        assert format_number(0.25) == "0.25"

    def test_small_values_stay_decimal(self):
        assert format_number(0.00001) == "0.00001"
        assert format_number(0.000001) == "0.000001"

    def test_exponent_is_unpadded(self):
        assert format_number(1e-7) == "1e-7"
        assert format_number(-2.5e-8) == "-2.5e-8"
        assert format_number(1.5e21) == "1.5e+21"
        assert format_number(1e21) == "1e+21"

    def test_non_finite(self):
        assert format_number(float("inf")) == "Infinity"
        assert format_number(float("-inf")) == "-Infinity"
        assert format_number(float("nan")) == "NaN"


# ---------------------------------------------------------------------------
# Test: Classifier Reply Parsing
# ---------------------------------------------------------------------------


class TestParseVerdict:
    """Tests for strict validation of the classifier's JSON reply."""

    def test_valid_reply(self):
        decision = parse_verdict(
            '{"needsChart": true, "needsRAG": false, "directAnswer": null}'
        )
        assert decision.needs_chart is True
        assert decision.needs_rag is False
        assert decision.direct_answer is None
        assert decision.source == SOURCE_CLASSIFIER

    def test_code_fence_tolerated(self):
        content = (
            '```json\n{"needsChart": false, "needsRAG": false, '
            '"directAnswer": "Paris"}\n```'
        )
        assert parse_verdict(content).direct_answer == "Paris"

    def test_blank_direct_answer_is_none(self):
        decision = parse_verdict(
            '{"needsChart": false, "needsRAG": true, "directAnswer": "  "}'
        )
        assert decision.direct_answer is None

    def test_missing_flag_rejected(self):
        with pytest.raises(ClassifierFailure):
            parse_verdict('{"needsChart": true}')

    def test_string_flag_rejected(self):
        with pytest.raises(ClassifierFailure):
            parse_verdict('{"needsChart": "yes", "needsRAG": false}')

    def test_not_json_rejected(self):
        with pytest.raises(ClassifierFailure):
            parse_verdict("I think you need a chart.")


# ---------------------------------------------------------------------------
# Test: Router
# ---------------------------------------------------------------------------


class TestRouter:
    """Tests for classifier-first routing with fallback."""

    def test_no_classifier_uses_fallback(self):
        decision = _run(Router(classifier=None).decide("What is 25 + 37?"))
        assert decision.source == SOURCE_FALLBACK
        assert decision.direct_answer == "The answer is 62."

    def test_classifier_decision_used(self):
        classifier = _classifier_replying(json.dumps({
            "needsChart": True, "needsRAG": True, "directAnswer": None,
        }))
        decision = _run(Router(classifier=classifier).decide("hello"))

        assert decision.source == SOURCE_CLASSIFIER
        assert decision.needs_chart is True
        assert decision.needs_rag is True

    def test_classifier_called_with_routing_temperature(self):
        classifier = _classifier_replying(
            '{"needsChart": false, "needsRAG": true, "directAnswer": null}'
        )
        _run(Router(classifier=classifier).decide("What does the policy say?"))

        kwargs = classifier.complete.call_args.kwargs
        assert kwargs["temperature"] == settings.llm_routing_temperature
        assert "What does the policy say?" in kwargs["messages"][0]["content"]

    def test_malformed_reply_falls_back(self):
        classifier = _classifier_replying('{"needsChart": "maybe"}')
        decision = _run(Router(classifier=classifier).decide("What is 25 + 37?"))

        assert decision.source == SOURCE_FALLBACK
        assert decision.direct_answer == "The answer is 62."

    def test_classifier_error_falls_back(self):
        classifier = AsyncMock()
        classifier.complete.side_effect = RuntimeError("quota exhausted")
        decision = _run(Router(classifier=classifier).decide(
            "Create a bar chart showing quarterly revenue from Q1 to Q4"
        ))

        assert decision.source == SOURCE_FALLBACK
        assert decision.needs_chart is True

    def test_classifier_timeout_falls_back(self):
        async def _slow(*args, **kwargs):
            await asyncio.sleep(5)

        classifier = AsyncMock()
        classifier.complete.side_effect = _slow
        router = Router(classifier=classifier, timeout=0.01)
        decision = _run(router.decide("What is 25 + 37?"))

        assert decision.source == SOURCE_FALLBACK
        assert decision.direct_answer == "The answer is 62."

    def test_blank_query_skips_classifier(self):
        classifier = _classifier_replying(
            '{"needsChart": true, "needsRAG": true, "directAnswer": null}'
        )
        decision = _run(Router(classifier=classifier).decide("   "))

        classifier.complete.assert_not_called()
        assert decision.source == SOURCE_FALLBACK
        assert decision.needs_chart is False
        assert decision.needs_rag is False
