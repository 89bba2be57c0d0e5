"""Local persistence: embedding cache and relational metadata."""

from rag_vectordb.storage.cache import CacheLookup, EmbeddingCache
from rag_vectordb.storage.metadata_store import (
    DocumentVectorMapping,
    DocumentVectorStore,
    MetadataDatabase,
    SystemSettings,
)

__all__ = [
    "CacheLookup",
    "DocumentVectorMapping",
    "DocumentVectorStore",
    "EmbeddingCache",
    "MetadataDatabase",
    "SystemSettings",
]
