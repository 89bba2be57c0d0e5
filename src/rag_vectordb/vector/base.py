"""Vector backend interfaces and data models."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class VectorRecord:
    """An embedding plus its source text and document metadata."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the record for the embedding cache."""
        return {"id": self.id, "values": self.values, "metadata": self.metadata}


@dataclass
class VectorMatch:
    """A single nearest-neighbor hit reported by the backend."""

    id: str
    distance: float | None
    metadata: dict[str, Any]


class VectorCollection(ABC):
    """Handle to a single backend collection (one namespace)."""

    name: str

    @abstractmethod
    async def count(self) -> int:
        """Return the number of vectors stored in the collection."""
        ...

    @abstractmethod
    async def upsert(self, records: list[VectorRecord]) -> None:
        """Insert records, replacing any existing record with the same id."""
        ...

    @abstractmethod
    async def add(self, records: list[VectorRecord]) -> None:
        """Insert records into a freshly created collection."""
        ...

    @abstractmethod
    async def query(self, vector: list[float], top_n: int) -> list[VectorMatch]:
        """Return the ``top_n`` nearest vectors, best match first."""
        ...

    @abstractmethod
    async def delete(self, ids: list[str]) -> None:
        """Delete vectors by id."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Delete every vector while keeping the collection."""
        ...

    @abstractmethod
    async def info(self) -> dict[str, Any]:
        """Return backend-reported details such as vector size."""
        ...


class VectorBackend(ABC):
    """Abstract interface for the vector index that stores namespaces.

    Contract:
        Collections are addressed by namespace name. ``get_collection`` raises
        when the collection is missing or the backend cannot be reached; callers
        decide whether that is an error or an expected absence.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish the backend connection if it is not already open."""
        ...

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Return the names of all collections."""
        ...

    @abstractmethod
    async def create_collection(self, name: str, vector_size: int) -> None:
        """Create an empty collection sized for ``vector_size`` dimensions."""
        ...

    @abstractmethod
    async def get_collection(self, name: str) -> VectorCollection:
        """Return a handle for an existing collection."""
        ...

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Drop a collection and all of its vectors."""
        ...

    async def aclose(self) -> None:
        """Release the backend connection."""
        return None
