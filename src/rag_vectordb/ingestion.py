"""Document ingestion: chunking, embedding, upsert, and mapping records."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from itertools import batched
from typing import Any

from rag_vectordb.embedding.base import Embedder
from rag_vectordb.errors import (
    ConfigurationError,
    EmbeddingFailureError,
    InvalidArgumentError,
)
from rag_vectordb.namespaces import NamespaceManager
from rag_vectordb.storage.cache import EmbeddingCache
from rag_vectordb.storage.metadata_store import (
    DocumentVectorMapping,
    DocumentVectorStore,
    SystemSettings,
)
from rag_vectordb.text_splitter import TextSplitter
from rag_vectordb.vector.base import VectorRecord

logger = logging.getLogger(__name__)

CACHE_BATCH_SIZE = 500
DEFAULT_CHUNK_OVERLAP = 20
EMBEDDING_FAILURE_MESSAGE = (
    "Could not embed document chunks! This document will not be recorded."
)


def _pop_either(data: dict[str, Any], key: str, alias: str) -> Any:
    value = data.pop(key, None)
    alias_value = data.pop(alias, None)
    return value if value is not None else alias_value


@dataclass
class DocumentData:
    """A document to ingest: its text, its id, and everything else as metadata."""

    page_content: str
    doc_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DocumentData":
        """Build from a camelCase or snake_case document payload."""
        data = dict(payload)
        page_content = _pop_either(data, "pageContent", "page_content") or ""
        doc_id = _pop_either(data, "docId", "doc_id")
        # Empty documents are skipped before the id matters.
        if not doc_id and page_content.strip():
            raise InvalidArgumentError("Document payload is missing docId.")
        return cls(page_content=page_content, doc_id=str(doc_id or ""), metadata=data)


@dataclass
class IngestResult:
    """Outcome of an ingestion; failures carry the error message."""

    vectorized: bool
    error: str | None = None


@dataclass
class ChunkSet:
    """Vector records ready for upsert, and whether they should be cached."""

    records: list[VectorRecord]
    cacheable: bool


class ChunkSource(ABC):
    """Produces the vector records for a document."""

    @abstractmethod
    async def load(
        self,
        document: DocumentData,
        source_file_path: str | None,
    ) -> ChunkSet | None:
        """Return records for the document, or None if this source has none."""
        ...


class CachedChunkSource(ChunkSource):
    """Reuses cached vectors, minting a fresh id for every record."""

    def __init__(self, cache: EmbeddingCache) -> None:
        self._cache = cache

    async def load(
        self,
        document: DocumentData,
        source_file_path: str | None,
    ) -> ChunkSet | None:
        lookup = await self._cache.lookup(source_file_path)
        if not lookup.exists:
            return None

        records: list[VectorRecord] = []
        for batch in lookup.chunks:
            for chunk in batch:
                metadata = {
                    key: value
                    for key, value in (chunk.get("metadata") or {}).items()
                    if key != "id"
                }
                records.append(
                    VectorRecord(
                        id=str(uuid.uuid4()),
                        values=chunk["values"],
                        metadata=metadata,
                    )
                )
        logger.info("Reusing %d cached chunks for %s", len(records), source_file_path)
        return ChunkSet(records=records, cacheable=False)


class EmbeddedChunkSource(ChunkSource):
    """Splits the document and embeds every chunk in a single embedder call."""

    def __init__(self, embedder: Embedder | None, settings: SystemSettings) -> None:
        self._embedder = embedder
        self._settings = settings

    async def load(
        self,
        document: DocumentData,
        source_file_path: str | None,
    ) -> ChunkSet:
        if self._embedder is None:
            raise ConfigurationError("No embedder configured for ingestion.")

        splitter = await self._build_splitter(document.metadata)
        chunks = splitter.split_text(document.page_content)
        logger.info("Chunks created from document: %d", len(chunks))

        vectors = await self._embedder.embed_chunks(chunks)
        if not vectors:
            raise EmbeddingFailureError(EMBEDDING_FAILURE_MESSAGE)
        if len(vectors) != len(chunks):
            raise EmbeddingFailureError(
                f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks."
            )

        records = [
            VectorRecord(
                id=str(uuid.uuid4()),
                values=vector,
                metadata={**document.metadata, "text": chunk},
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        return ChunkSet(records=records, cacheable=True)

    async def _build_splitter(self, metadata: dict[str, Any]) -> TextSplitter:
        preferred_size = await self._settings.get_value_or_fallback(
            "text_splitter_chunk_size"
        )
        overlap = await self._settings.get_value_or_fallback(
            "text_splitter_chunk_overlap", DEFAULT_CHUNK_OVERLAP
        )
        return TextSplitter(
            chunk_size=TextSplitter.determine_max_chunk_size(
                preferred_size,
                self._embedder.embedding_max_chunk_length if self._embedder else None,
            ),
            chunk_overlap=int(overlap),
            chunk_header_meta=TextSplitter.build_header_meta(metadata),
        )


class IngestionPipeline:
    """Turns documents into stored vectors plus their mapping rows."""

    def __init__(
        self,
        namespaces: NamespaceManager,
        cache: EmbeddingCache,
        document_vectors: DocumentVectorStore,
        embedder: Embedder | None,
        settings: SystemSettings,
    ) -> None:
        self._namespaces = namespaces
        self._cache = cache
        self._document_vectors = document_vectors
        self._cached_source = CachedChunkSource(cache)
        self._embedded_source = EmbeddedChunkSource(embedder, settings)

    async def ingest(
        self,
        namespace: str,
        document: DocumentData | Mapping[str, Any],
        source_file_path: str | None = None,
        skip_cache: bool = False,
    ) -> IngestResult:
        """Vectorize a document into a namespace.

        Never raises: any failure is reported through ``IngestResult.error``.
        Blank documents are skipped with ``vectorized=False`` and no error.

        Args:
            namespace: Target namespace; created on first write.
            document: Document text, id, and metadata.
            source_file_path: Path used as the embedding cache key.
            skip_cache: Force fresh embedding even when a cache entry exists.
        """
        try:
            if not isinstance(document, DocumentData):
                document = DocumentData.from_dict(document)
            if not document.page_content.strip():
                return IngestResult(vectorized=False)

            logger.info("Adding new vectorized document into namespace %s", namespace)
            chunk_set: ChunkSet | None = None
            if not skip_cache:
                chunk_set = await self._cached_source.load(document, source_file_path)
            if chunk_set is None:
                chunk_set = await self._embedded_source.load(document, source_file_path)

            await self._persist(namespace, document.doc_id, chunk_set, source_file_path)
            return IngestResult(vectorized=True)
        except Exception as exc:
            logger.error("Failed to add document to namespace %s: %s", namespace, exc)
            return IngestResult(vectorized=False, error=str(exc))

    async def _persist(
        self,
        namespace: str,
        doc_id: str,
        chunk_set: ChunkSet,
        source_file_path: str | None,
    ) -> None:
        mappings = [
            DocumentVectorMapping(doc_id=doc_id, vector_id=record.id)
            for record in chunk_set.records
        ]

        logger.info(
            "Inserting %d vectorized chunks into namespace %s",
            len(chunk_set.records),
            namespace,
        )
        await self._namespaces.create_or_update(chunk_set.records, namespace)
        if chunk_set.cacheable:
            batches = [list(batch) for batch in batched(chunk_set.records, CACHE_BATCH_SIZE)]
            await self._cache.store(batches, source_file_path)

        await self._document_vectors.bulk_insert(mappings)
