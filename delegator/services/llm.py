# =============================================================================
# LLM Providers — Routing Classifier & Answer Synthesis
# =============================================================================
#
# The delegator talks to a language model for exactly two jobs:
#   - ROUTING:   a short JSON verdict at near-zero temperature
#   - SYNTHESIS: the free-text final answer at a higher temperature
#
# Both go through the same `complete()` call; the caller passes the
# temperature and token cap for its job, anything omitted falls back to
# settings.llm_temperature / settings.llm_max_tokens.
#
# Provider choice is a config switch (LLM_PROVIDER):
#   "anthropic"          → AnthropicProvider (native SDK)
#   "openai_compatible"  → OpenAICompatibleProvider (any /chat/completions API)
#
# A missing key raises ValueError at construction. get_orchestrator() treats
# that as "no LLM": routing uses keyword rules and synthesis apologises.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from delegator.config import settings

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Text of one completion plus the usage numbers logged by callers."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    """What the router and synthesizer need from a model backend."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Run one completion.

        Args:
            messages: "user"/"assistant" turns. The router and synthesizer
                each send a single user turn holding their whole prompt.
            system: Optional system instruction.
            temperature: Per-call sampling temperature.
            max_tokens: Per-call output cap.
        """
        ...


def _sampling(temperature: float | None, max_tokens: int | None) -> dict:
    """Per-call sampling overrides merged over the configured defaults."""
    return {
        "temperature": (
            temperature if temperature is not None else settings.llm_temperature
        ),
        "max_tokens": max_tokens or settings.llm_max_tokens,
    }


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """Claude through `AsyncAnthropic`; `system` goes in the top-level kwarg."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(
            api_key=resolved_key,
            timeout=settings.collaborator_timeout_seconds,
        )
        self._model = model or settings.llm_model
        logger.info("Routing/synthesis LLM: anthropic (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        request: dict = {
            "model": self._model,
            "messages": messages,
            **_sampling(temperature, max_tokens),
        }
        if system:
            request["system"] = system

        response = await self._client.messages.create(**request)

        text = next(
            (block.text for block in response.content if block.type == "text"),
            "",
        )
        return LLMResponse(
            content=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# OpenAI-compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Any chat-completions endpoint through `AsyncOpenAI`.

    LLM_BASE_URL selects the vendor; unset means api.openai.com. The
    system instruction is sent as a leading "system" message.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {
            "api_key": resolved_key,
            "timeout": settings.collaborator_timeout_seconds,
        }
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        logger.info(
            "Routing/synthesis LLM: openai_compatible (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "default",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        turns = [{"role": "system", "content": system}] if system else []
        turns.extend(messages)

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=turns,
            **_sampling(temperature, max_tokens),
        )

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

# One provider per process; router and synthesizer share it.
_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Return the provider named by settings.llm_provider, creating it once.

    Raises:
        ValueError: If the chosen provider has no API key.
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        else:
            _provider = AnthropicProvider()
    return _provider
