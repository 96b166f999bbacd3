"""Embedding service backed by the OpenAI embeddings API."""

from __future__ import annotations

import logging

import openai

from taskmind.errors import DependencyError, with_timeout

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Turns text into a fixed-length vector.

    Args:
        client: An ``openai.AsyncOpenAI`` instance. Built from *api_key* when
            omitted.
        model: Embedding model name.
        dimensions: Requested vector length (``None`` keeps the model default).
        timeout: Seconds before a call is abandoned.
    """

    def __init__(
        self,
        client: openai.AsyncOpenAI | None = None,
        *,
        api_key: str = "",
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._client = client or openai.AsyncOpenAI(api_key=api_key or None)
        self._model = model
        self._dimensions = dimensions
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        """Embed a single text. Raises ``DependencyError`` on failure."""
        kwargs: dict = {"model": self._model, "input": text}
        if self._dimensions:
            kwargs["dimensions"] = self._dimensions
        try:
            response = await with_timeout(
                self._client.embeddings.create(**kwargs), self._timeout, "embedding"
            )
        except openai.OpenAIError as exc:
            logger.warning("Embedding request failed: %s", exc)
            raise DependencyError("embedding", str(exc)) from exc
        return list(response.data[0].embedding)
