"""Async client for the OpenAI embeddings endpoint."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import httpx


@dataclass(slots=True)
class EmbeddingBatchResult:
    """Normalized response from the embedding service."""

    embeddings: List[List[float]]
    dimensions: int
    model_name: str


class EmbeddingClient:
    """Simple HTTP client for text embeddings."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError("OpenAI API key is required")
        self.api_key = api_key
        self.model = model
        self.base_url = str(base_url).rstrip("/")
        self.timeout = timeout

    async def embed_texts(self, texts: Sequence[str]) -> EmbeddingBatchResult:
        """Embed a sequence of texts in a single request."""

        if not texts:
            raise ValueError("at least one text is required for embeddings")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {"model": self.model, "input": list(texts)}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(f"{self.base_url}/embeddings", json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()

        items = data.get("data")
        if not isinstance(items, list) or not items:
            raise RuntimeError("embedding service returned malformed payload")

        # The API may return items out of order; "index" ties them back to the input.
        ordered = sorted(items, key=lambda item: int(item.get("index") or 0))
        embeddings: List[List[float]] = []
        for item in ordered:
            vector = item.get("embedding")
            if not isinstance(vector, list):
                raise RuntimeError("embedding service returned malformed payload")
            embeddings.append(vector)

        return EmbeddingBatchResult(
            embeddings=embeddings,
            dimensions=len(embeddings[0]),
            model_name=str(data.get("model") or self.model),
        )

    async def embed(self, text: str) -> List[float]:
        result = await self.embed_texts([text])
        return result.embeddings[0]
