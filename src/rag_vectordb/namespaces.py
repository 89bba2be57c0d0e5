"""Namespace (collection) lifecycle and stat queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rag_vectordb.errors import InvalidArgumentError, NamespaceNotFoundError
from rag_vectordb.vector.base import VectorBackend, VectorCollection, VectorRecord

logger = logging.getLogger(__name__)


@dataclass
class NamespaceLookup:
    """Outcome of fetching a collection: either a handle or the error raised."""

    name: str
    collection: VectorCollection | None = None
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.collection is not None


@dataclass
class NamespaceStats:
    """Backend statistics for one namespace."""

    name: str
    vector_count: int
    vector_size: int | None = None


class NamespaceManager:
    """Creates, inspects, and removes namespaces on a vector backend."""

    def __init__(self, backend: VectorBackend) -> None:
        self._backend = backend

    async def exists(self, name: str | None) -> bool:
        """Check whether a namespace exists by listing all collections."""
        if not name:
            raise InvalidArgumentError("No namespace value provided.")
        collections = await self._backend.list_collections()
        return name in collections

    async def has_namespace(self, name: str | None) -> bool:
        """Like ``exists`` but treats an empty name as absent."""
        if not name:
            return False
        return await self.exists(name)

    async def count(self, name: str | None) -> int:
        """Return the number of vectors in a namespace, 0 if it is missing."""
        if not await self.exists(name):
            return 0
        collection = await self._backend.get_collection(name)
        return (await collection.count()) or 0

    async def lookup(self, name: str | None) -> NamespaceLookup:
        """Fetch the collection handle, capturing any backend error."""
        if not name:
            raise InvalidArgumentError("No namespace value provided.")
        try:
            collection = await self._backend.get_collection(name)
        except Exception as exc:
            return NamespaceLookup(name=name, error=exc)
        return NamespaceLookup(name=name, collection=collection)

    async def get_or_none(self, name: str | None) -> VectorCollection | None:
        """Return the collection handle, or None if it cannot be fetched."""
        result = await self.lookup(name)
        if result.error is not None:
            logger.debug("Namespace %s lookup failed: %s", name, result.error)
        return result.collection

    async def create_or_update(self, records: list[VectorRecord], name: str) -> None:
        """Upsert into an existing namespace, or create it and insert."""
        if not records:
            return
        if await self.has_namespace(name):
            collection = await self._backend.get_collection(name)
            await collection.upsert(records)
            return

        await self._backend.create_collection(name, vector_size=len(records[0].values))
        collection = await self._backend.get_collection(name)
        await collection.add(records)

    async def delete_all_vectors(self, name: str) -> None:
        """Remove every vector while keeping the namespace itself."""
        if not await self.exists(name):
            raise NamespaceNotFoundError(name)
        collection = await self._backend.get_collection(name)
        await collection.clear()

    async def delete_namespace(self, name: str | None) -> str:
        """Drop a namespace and its vectors.

        Raises:
            NamespaceNotFoundError: If the namespace does not exist.
        """
        if not await self.exists(name):
            raise NamespaceNotFoundError(name)
        await self._backend.delete_collection(name)
        logger.info("Deleted namespace %s", name)
        return f"Namespace {name} was deleted."

    async def stats(self, name: str | None) -> NamespaceStats:
        """Return stats for an existing namespace.

        Raises:
            InvalidArgumentError: If no namespace name is given.
            NamespaceNotFoundError: If the namespace does not exist.
        """
        if not name:
            raise InvalidArgumentError("namespace required")
        if not await self.exists(name):
            raise NamespaceNotFoundError(name)
        collection = await self._backend.get_collection(name)
        info = await collection.info()
        return NamespaceStats(
            name=name,
            vector_count=(await collection.count()) or 0,
            vector_size=info.get("vector_size"),
        )

    async def list_namespaces(self) -> list[str]:
        return await self._backend.list_collections()

    async def total_vectors(self) -> int:
        """Sum vector counts across every namespace."""
        total = 0
        for name in await self._backend.list_collections():
            collection = await self._backend.get_collection(name)
            total += (await collection.count()) or 0
        return total
