"""Vector backend implementations and interfaces."""

from rag_vectordb.vector.base import (
    VectorBackend,
    VectorCollection,
    VectorMatch,
    VectorRecord,
)
from rag_vectordb.vector.qdrant_client import QdrantBackend, QdrantCollection
from rag_vectordb.vector.scoring import distance_to_similarity

__all__ = [
    "QdrantBackend",
    "QdrantCollection",
    "VectorBackend",
    "VectorCollection",
    "VectorMatch",
    "VectorRecord",
    "distance_to_similarity",
]
