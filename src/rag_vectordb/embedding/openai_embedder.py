import asyncio
import logging
from itertools import batched
from typing import Any

from openai import APIConnectionError, AsyncOpenAI, RateLimitError

from rag_vectordb.config import Settings
from rag_vectordb.embedding.base import Embedder
from rag_vectordb.errors import ConfigurationError

logger = logging.getLogger(__name__)


class OpenAIEmbedder(Embedder):
    """OpenAI implementation of Embedder."""

    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
    MAX_RETRIES = 5
    BASE_DELAY = 1.0  # Base delay in seconds for exponential backoff
    MAX_INPUTS_PER_REQUEST = 500

    def __init__(
        self,
        api_key: str,
        embedding_model: str | None = None,
        max_chunk_length: int = 8191,
    ) -> None:
        """Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key.
            embedding_model: Model to use for embeddings (default: text-embedding-3-small).
            max_chunk_length: Longest text, in characters, the splitter may produce.
        """
        self._client = AsyncOpenAI(api_key=api_key)
        self._embedding_model = embedding_model or self.DEFAULT_EMBEDDING_MODEL
        self.embedding_max_chunk_length = max_chunk_length

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIEmbedder":
        """Build an embedder from application settings.

        Raises:
            ConfigurationError: If no OpenAI API key is configured.
        """
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for embedding.")
        return cls(
            api_key=settings.openai_api_key,
            embedding_model=settings.openai_embedding_model,
            max_chunk_length=settings.embedding_max_chunk_length,
        )

    async def embed_chunks(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for texts, preserving input order.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per input text.

        Raises:
            OpenAIEmbedderError: If an API request fails after retries.
        """
        vectors: list[list[float]] = []
        for batch in batched(texts, self.MAX_INPUTS_PER_REQUEST):
            response = await self._request_with_retry(
                self._client.embeddings.create,
                model=self._embedding_model,
                input=list(batch),
            )
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(item.embedding for item in ordered)
        return vectors

    async def embed_text_input(self, text: str) -> list[float]:
        """Generate the embedding vector for one text."""
        vectors = await self.embed_chunks([text])
        return vectors[0] if vectors else []

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

    async def _request_with_retry[T](
        self,
        func: Any,
        **kwargs: Any,
    ) -> T:
        """Execute an API request with exponential backoff retry.

        Args:
            func: Async function to call.
            **kwargs: Arguments to pass to the function.

        Returns:
            The result of the function call.

        Raises:
            OpenAIEmbedderError: If all retries are exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(self.MAX_RETRIES):
            try:
                return await func(**kwargs)
            except RateLimitError as e:
                last_error = e
                delay = self.BASE_DELAY * (2**attempt)
                logger.warning(
                    "Rate limited (attempt %d/%d), retrying in %.1f seconds",
                    attempt + 1,
                    self.MAX_RETRIES,
                    delay,
                )
                await asyncio.sleep(delay)
            except APIConnectionError as e:
                last_error = e
                delay = self.BASE_DELAY * (2**attempt)
                logger.warning(
                    "Connection error (attempt %d/%d), retrying in %.1f seconds: %s",
                    attempt + 1,
                    self.MAX_RETRIES,
                    delay,
                    str(e),
                )
                await asyncio.sleep(delay)

        raise OpenAIEmbedderError(
            f"Request failed after {self.MAX_RETRIES} retries"
        ) from last_error


class OpenAIEmbedderError(Exception):
    """Exception raised when OpenAI API requests fail."""

    pass
