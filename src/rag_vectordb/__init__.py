"""Namespace-scoped vector storage and retrieval for RAG applications."""

from rag_vectordb.config import Settings
from rag_vectordb.errors import (
    ConfigurationError,
    EmbeddingFailureError,
    InvalidArgumentError,
    NamespaceNotFoundError,
    VectorDBError,
)
from rag_vectordb.ingestion import DocumentData, IngestResult
from rag_vectordb.provider import VectorDatabase
from rag_vectordb.retrieval import SearchResult

__all__ = [
    "ConfigurationError",
    "DocumentData",
    "EmbeddingFailureError",
    "IngestResult",
    "InvalidArgumentError",
    "NamespaceNotFoundError",
    "SearchResult",
    "Settings",
    "VectorDBError",
    "VectorDatabase",
]
