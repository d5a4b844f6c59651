import asyncio
import logging
from typing import Optional

from openai import OpenAI

from ..config import get_settings

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    pass


class OpenAIEmbedder:
    """Fixed-dimension text embeddings through the OpenAI SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
    ):
        self.settings = get_settings()
        self.api_key = api_key if api_key is not None else self.settings.openai_api_key
        self.model = model or self.settings.embedding_model
        self.dimensions = dimensions or self.settings.embedding_dimensions
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.settings.openai_base_url)
        return self._client

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        response = self._get_client().embeddings.create(
            model=self.model,
            input=texts,
            dimensions=self.dimensions,
        )
        return [item.embedding for item in response.data]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self.api_key:
            raise EmbeddingError("Missing OpenAI API key. Cannot embed text.")

        try:
            embeddings = await asyncio.to_thread(self._embed_sync, texts)
        except Exception as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Embedding service returned {len(embeddings)} vectors for {len(texts)} inputs"
            )
        return embeddings

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]
