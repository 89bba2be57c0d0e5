from abc import ABC, abstractmethod


class Embedder(ABC):
    """Abstract interface for embedding engines.

    Output order always matches input order, so ``embed_chunks(texts)[i]`` is
    the vector for ``texts[i]``.
    """

    embedding_max_chunk_length: int | None = None

    @abstractmethod
    async def embed_chunks(self, texts: list[str]) -> list[list[float]]:
        """Generate one embedding vector per input text."""
        ...

    @abstractmethod
    async def embed_text_input(self, text: str) -> list[float]:
        """Generate the embedding vector for a single query text."""
        ...
