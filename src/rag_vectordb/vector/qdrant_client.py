"""Qdrant vector backend implementation."""

from __future__ import annotations

import logging
from itertools import batched
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models

from rag_vectordb.config import Settings
from rag_vectordb.errors import ConfigurationError
from rag_vectordb.vector.base import (
    VectorBackend,
    VectorCollection,
    VectorMatch,
    VectorRecord,
)

logger = logging.getLogger(__name__)

# Qdrant reports these metrics as similarities; the rest are already distances.
_SIMILARITY_METRICS = {models.Distance.COSINE, models.Distance.DOT}


class QdrantCollection(VectorCollection):
    """Handle to a single Qdrant collection."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        name: str,
        distance: models.Distance,
        batch_size: int = 500,
    ) -> None:
        self._client = client
        self.name = name
        self._distance = distance
        self._batch_size = batch_size

    async def count(self) -> int:
        """Return the exact number of points in the collection."""
        result = await self._client.count(collection_name=self.name, exact=True)
        return result.count

    async def upsert(self, records: list[VectorRecord]) -> None:
        """Upsert records, splitting large submissions into request batches."""
        for batch in batched(records, self._batch_size):
            await self._client.upsert(
                collection_name=self.name,
                points=[self._build_point(record) for record in batch],
            )

    async def add(self, records: list[VectorRecord]) -> None:
        """Insert records; Qdrant has no separate insert so this upserts."""
        await self.upsert(records)

    async def query(self, vector: list[float], top_n: int) -> list[VectorMatch]:
        """Query the nearest points and report their distances."""
        response = await self._client.query_points(
            collection_name=self.name,
            query=vector,
            limit=top_n,
            with_payload=True,
        )
        return [
            VectorMatch(
                id=str(point.id),
                distance=self._to_distance(point.score),
                metadata=dict(point.payload or {}),
            )
            for point in response.points
        ]

    async def delete(self, ids: list[str]) -> None:
        """Delete points by id."""
        await self._client.delete(
            collection_name=self.name,
            points_selector=models.PointIdsList(points=list(ids)),
        )

    async def clear(self) -> None:
        """Delete every point; an empty filter matches the whole collection."""
        await self._client.delete(
            collection_name=self.name,
            points_selector=models.FilterSelector(filter=models.Filter()),
        )

    async def info(self) -> dict[str, Any]:
        """Return point count and vector size for the collection."""
        info = await self._client.get_collection(self.name)
        vectors = self._extract_vectors_config(info)
        vector_size = vectors.size if isinstance(vectors, models.VectorParams) else None
        return {"points_count": info.points_count, "vector_size": vector_size}

    def _build_point(self, record: VectorRecord) -> models.PointStruct:
        return models.PointStruct(
            id=record.id,
            vector=record.values,
            payload=record.metadata,
        )

    def _to_distance(self, score: float | None) -> float | None:
        if score is None:
            return None
        if self._distance in _SIMILARITY_METRICS:
            return 1 - score
        return score

    def _extract_vectors_config(
        self,
        info: models.CollectionInfo,
    ) -> dict[str, models.VectorParams] | models.VectorParams | None:
        try:
            return info.config.params.vectors
        except AttributeError:
            return None


class QdrantBackend(VectorBackend):
    """Qdrant-based vector backend with a lazily established client."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the backend without connecting.

        Args:
            settings: Application settings with Qdrant connection info.

        Raises:
            ValueError: If ``qdrant_distance`` is not a Qdrant distance name.
        """
        self._settings = settings
        self._distance = models.Distance(settings.qdrant_distance)
        self._client: AsyncQdrantClient | None = None

    async def connect(self) -> None:
        """Create the Qdrant client on first use."""
        await self._active_client()

    async def list_collections(self) -> list[str]:
        client = await self._active_client()
        response = await client.get_collections()
        return [collection.name for collection in response.collections]

    async def create_collection(self, name: str, vector_size: int) -> None:
        client = await self._active_client()
        await client.create_collection(
            collection_name=name,
            vectors_config=models.VectorParams(
                size=vector_size,
                distance=self._distance,
            ),
        )
        logger.info("Created Qdrant collection %s (size=%d)", name, vector_size)

    async def get_collection(self, name: str) -> QdrantCollection:
        """Return a handle for ``name``; raises if Qdrant cannot find it."""
        client = await self._active_client()
        await client.get_collection(name)
        return QdrantCollection(
            client,
            name,
            self._distance,
            batch_size=self._settings.qdrant_upsert_batch_size,
        )

    async def delete_collection(self, name: str) -> None:
        client = await self._active_client()
        await client.delete_collection(collection_name=name)

    async def aclose(self) -> None:
        """Close the Qdrant client if one was opened."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _active_client(self) -> AsyncQdrantClient:
        self._require_enabled()
        if self._client is None:
            self._client = self._build_client()
            logger.debug("Connected to Qdrant (%s)", self._describe_target())
        return self._client

    def _require_enabled(self) -> None:
        if self._settings.vector_db != "qdrant":
            raise ConfigurationError(
                f"Qdrant::Invalid ENV settings (VECTOR_DB={self._settings.vector_db})"
            )

    def _build_client(self) -> AsyncQdrantClient:
        if self._settings.qdrant_path:
            return AsyncQdrantClient(path=self._settings.qdrant_path)
        if self._settings.qdrant_url:
            return AsyncQdrantClient(
                url=self._settings.qdrant_url,
                api_key=self._settings.qdrant_api_key,
            )
        return AsyncQdrantClient(
            host=self._settings.qdrant_host,
            port=self._settings.qdrant_port,
            api_key=self._settings.qdrant_api_key,
        )

    def _describe_target(self) -> str:
        if self._settings.qdrant_path:
            return f"path={self._settings.qdrant_path}"
        if self._settings.qdrant_url:
            return f"url={self._settings.qdrant_url}"
        return f"{self._settings.qdrant_host}:{self._settings.qdrant_port}"
