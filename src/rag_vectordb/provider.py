"""Vector database facade wiring the storage components together."""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import anyio.to_thread

from rag_vectordb.config import Settings
from rag_vectordb.deletion import DocumentDeletion
from rag_vectordb.embedding.base import Embedder
from rag_vectordb.embedding.openai_embedder import OpenAIEmbedder
from rag_vectordb.ingestion import DocumentData, IngestionPipeline, IngestResult
from rag_vectordb.namespaces import NamespaceManager, NamespaceStats
from rag_vectordb.retrieval import RetrievalEngine, SearchResult
from rag_vectordb.storage.cache import EmbeddingCache
from rag_vectordb.storage.metadata_store import (
    DocumentVectorStore,
    MetadataDatabase,
    SystemSettings,
)
from rag_vectordb.vector.base import VectorBackend
from rag_vectordb.vector.qdrant_client import QdrantBackend

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DatabaseComponents:
    """Container for the components sharing one backend connection."""

    namespaces: NamespaceManager
    cache: EmbeddingCache
    document_vectors: DocumentVectorStore
    system_settings: SystemSettings
    ingestion: IngestionPipeline
    retrieval: RetrievalEngine
    deletion: DocumentDeletion


class VectorDatabase:
    """Namespace-scoped vector storage for the application.

    Use as an async context manager; the backend connection is opened on
    entry and closed on exit.
    """

    def __init__(
        self,
        settings: Settings,
        backend: VectorBackend | None = None,
        embedder: Embedder | None = None,
        metadata_db: MetadataDatabase | None = None,
    ) -> None:
        """Initialize the database.

        Args:
            settings: Application settings.
            backend: Vector backend (default: Qdrant from settings).
            embedder: Embedder for ingestion and search (default: OpenAI when
                an API key is configured).
            metadata_db: Metadata database (default: SQLite at
                ``settings.metadata_db_path``).
        """
        self._settings = settings
        self._backend = backend or QdrantBackend(settings)
        self._embedder = embedder
        self._owns_embedder = False
        self._metadata_db = metadata_db
        self._owns_metadata_db = False
        self._components: DatabaseComponents | None = None

    async def __aenter__(self) -> "VectorDatabase":
        await self._backend.connect()

        if self._metadata_db is None:
            self._metadata_db = MetadataDatabase(self._settings.metadata_db_path)
            self._owns_metadata_db = True
        if self._embedder is None and self._settings.openai_api_key:
            self._embedder = OpenAIEmbedder.from_settings(self._settings)
            self._owns_embedder = True

        namespaces = NamespaceManager(self._backend)
        cache = EmbeddingCache(self._settings.storage_dir)
        document_vectors = DocumentVectorStore(self._metadata_db)
        system_settings = SystemSettings(self._metadata_db)
        self._components = DatabaseComponents(
            namespaces=namespaces,
            cache=cache,
            document_vectors=document_vectors,
            system_settings=system_settings,
            ingestion=IngestionPipeline(
                namespaces=namespaces,
                cache=cache,
                document_vectors=document_vectors,
                embedder=self._embedder,
                settings=system_settings,
            ),
            retrieval=RetrievalEngine(namespaces),
            deletion=DocumentDeletion(namespaces, document_vectors),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._backend.aclose()
        if self._owns_embedder and isinstance(self._embedder, OpenAIEmbedder):
            await self._embedder.aclose()
        if self._owns_metadata_db and self._metadata_db is not None:
            self._metadata_db.close()
            self._metadata_db = None
        self._components = None

    @property
    def components(self) -> DatabaseComponents:
        if self._components is None:
            raise RuntimeError("VectorDatabase must be used as an async context manager.")
        return self._components

    @property
    def embedder(self) -> Embedder | None:
        return self._embedder

    async def heartbeat(self) -> dict[str, int]:
        """Confirm the backend answers and return the current epoch millis."""
        await self._backend.list_collections()
        return {"heartbeat": int(time.time() * 1000)}

    async def namespaces(self) -> list[str]:
        return await self.components.namespaces.list_namespaces()

    async def total_vectors(self) -> int:
        return await self.components.namespaces.total_vectors()

    async def has_namespace(self, namespace: str | None) -> bool:
        return await self.components.namespaces.has_namespace(namespace)

    async def namespace_count(self, namespace: str | None) -> int:
        return await self.components.namespaces.count(namespace)

    async def namespace_stats(self, namespace: str | None) -> NamespaceStats:
        return await self.components.namespaces.stats(namespace)

    async def delete_namespace(self, namespace: str | None) -> str:
        return await self.components.namespaces.delete_namespace(namespace)

    async def delete_all_vectors(self, namespace: str) -> None:
        await self.components.namespaces.delete_all_vectors(namespace)

    async def ingest(
        self,
        namespace: str,
        document: DocumentData | Mapping[str, Any],
        source_file_path: str | None = None,
        skip_cache: bool = False,
    ) -> IngestResult:
        return await self.components.ingestion.ingest(
            namespace,
            document,
            source_file_path=source_file_path,
            skip_cache=skip_cache,
        )

    async def search(
        self,
        namespace: str | None,
        query_text: str | None,
        embedder: Embedder | None = None,
        similarity_threshold: float = 0.25,
        top_n: int = 4,
        filter_identifiers: Iterable[str] | None = None,
    ) -> SearchResult:
        """Search a namespace, using the configured embedder unless one is given."""
        return await self.components.retrieval.search(
            namespace,
            query_text,
            embedder or self._embedder,
            similarity_threshold=similarity_threshold,
            top_n=top_n,
            filter_identifiers=filter_identifiers,
        )

    async def delete_document(self, namespace: str, doc_id: str) -> bool:
        return await self.components.deletion.delete_document(namespace, doc_id)

    async def purge_cache(self, source_file_path: str) -> bool:
        return await self.components.cache.purge(source_file_path)

    async def reset(self) -> dict[str, bool]:
        """Irreversibly wipe every namespace, mapping row, and cached file."""
        components = self.components
        for name in await components.namespaces.list_namespaces():
            await self._backend.delete_collection(name)
        await components.document_vectors.delete_all()
        # Release local on-disk Qdrant storage before removing the directory.
        await self._backend.aclose()
        await anyio.to_thread.run_sync(
            shutil.rmtree, self._settings.storage_dir, True
        )
        logger.warning("Reset vector storage at %s", self._settings.storage_dir)
        return {"reset": True}
