# =============================================================================
# Embedding Service — Query & Seed Vectors (Provider-Agnostic)
# =============================================================================
#
# Generates vector embeddings using any OpenAI-compatible embedding API.
#
# Two entry points:
#   - embed_batch(): sync, used by the seeding script
#   - embed():       async, used by the retrieval worker at query time;
#                    runs the sync SDK call in a worker thread
#
# TOKEN LIMITS:
# - Each text: max 8,191 tokens
# - Texts are batched at settings.embedding_batch_size per API call
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from openai import OpenAI

from delegator.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class Embedder(Protocol):
    """Anything that can turn a query string into a vector."""

    async def embed(self, text: str) -> list[float]:
        ...


# ---------------------------------------------------------------------------
# Implementation: OpenAI-compatible embeddings
# ---------------------------------------------------------------------------


class OpenAIEmbedder:
    """
    Embedder backed by the OpenAI SDK (or any compatible endpoint).

    API key resolution order:
      1. OPENAI_API_KEY (explicit embedding key)
      2. LLM_API_KEY (shared key for LLM + embeddings)

    The client is created lazily so that constructing the embedder never
    fails at import or wiring time; a missing key surfaces on first use.
    """

    def __init__(
        self,
        model: str | None = None,
        dimensions: int | None = None,
        base_url: str | None = None,
    ) -> None:
        self._model = model or settings.embedding_model
        self._dimensions = dimensions or settings.embedding_dimensions
        self._base_url = base_url or settings.embedding_base_url
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        """Lazily initialize and cache the embedding client."""
        if self._client is None:
            resolved_key = settings.openai_api_key or settings.llm_api_key
            if not resolved_key:
                raise ValueError(
                    "No API key configured for embeddings. "
                    "Set OPENAI_API_KEY or LLM_API_KEY in .env"
                )

            client_kwargs: dict = {
                "api_key": resolved_key,
                "timeout": settings.collaborator_timeout_seconds,
            }
            if self._base_url:
                client_kwargs["base_url"] = self._base_url

            self._client = OpenAI(**client_kwargs)

            logger.info(
                "Initialized embedding client (model=%s, base_url=%s)",
                self._model,
                self._base_url or "https://api.openai.com/v1",
            )
        return self._client

    def embed_batch(
        self,
        texts: Sequence[str],
        batch_size: int | None = None,
    ) -> list[list[float]]:
        """
        Generate embeddings for a batch of texts.

        Processes texts in sub-batches and returns embeddings in the SAME
        ORDER as the input texts.

        Args:
            texts: Text strings to embed.
            batch_size: Number of texts per API call. Defaults to
                settings.embedding_batch_size.

        Returns:
            One embedding vector per input text, in input order.

        Raises:
            ValueError: If no API key is configured.
            openai.APIError: If the API call fails.
        """
        if not texts:
            return []

        client = self._get_client()
        _batch_size = batch_size or settings.embedding_batch_size

        all_embeddings: list[list[float]] = [[] for _ in texts]

        for i in range(0, len(texts), _batch_size):
            batch = list(texts[i : i + _batch_size])
            logger.debug(
                "Embedding batch %d–%d of %d texts (model=%s)",
                i + 1,
                min(i + _batch_size, len(texts)),
                len(texts),
                self._model,
            )

            create_kwargs: dict = {
                "model": self._model,
                "input": batch,
            }
            if self._dimensions:
                create_kwargs["dimensions"] = self._dimensions

            response = client.embeddings.create(**create_kwargs)

            # Items carry their input index; place each one by it.
            for item in sorted(response.data, key=lambda x: x.index):
                all_embeddings[i + item.index] = item.embedding

        logger.info(
            "Generated %d embeddings (model=%s, dimensions=%d)",
            len(texts),
            self._model,
            self._dimensions,
        )
        return all_embeddings

    async def embed(self, text: str) -> list[float]:
        """Embed a single query string without blocking the event loop."""
        result = await asyncio.to_thread(self.embed_batch, [text], 1)
        return result[0]
