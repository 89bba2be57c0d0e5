from rag_vectordb.embedding.base import Embedder
from rag_vectordb.embedding.openai_embedder import OpenAIEmbedder, OpenAIEmbedderError

__all__ = [
    "Embedder",
    "OpenAIEmbedder",
    "OpenAIEmbedderError",
]
