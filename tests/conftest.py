from __future__ import annotations

import math
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from rag_vectordb.config import Settings
from rag_vectordb.embedding.base import Embedder
from rag_vectordb.ingestion import IngestionPipeline
from rag_vectordb.namespaces import NamespaceManager
from rag_vectordb.storage.cache import EmbeddingCache
from rag_vectordb.storage.metadata_store import (
    DocumentVectorStore,
    MetadataDatabase,
    SystemSettings,
)
from rag_vectordb.vector.base import (
    VectorBackend,
    VectorCollection,
    VectorMatch,
    VectorRecord,
)

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional in environments without dev deps
    load_dotenv = None


def pytest_configure() -> None:
    """Load .env for integration tests without overriding existing env vars."""
    if load_dotenv is None:
        return

    repo_root = Path(__file__).resolve().parents[1]
    load_dotenv(repo_root / ".env", override=False)


def _cosine_distance(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1 - dot / norm


class InMemoryCollection(VectorCollection):
    """Dict-backed collection ranking by cosine distance."""

    def __init__(self, name: str, vector_size: int) -> None:
        self.name = name
        self.vector_size = vector_size
        self.records: dict[str, VectorRecord] = {}
        self.upsert_calls = 0
        self.add_calls = 0

    async def count(self) -> int:
        return len(self.records)

    async def upsert(self, records: list[VectorRecord]) -> None:
        self.upsert_calls += 1
        for record in records:
            self.records[record.id] = record

    async def add(self, records: list[VectorRecord]) -> None:
        self.add_calls += 1
        for record in records:
            self.records[record.id] = record

    async def query(self, vector: list[float], top_n: int) -> list[VectorMatch]:
        ranked = sorted(
            self.records.values(),
            key=lambda record: _cosine_distance(vector, record.values),
        )
        return [
            VectorMatch(
                id=record.id,
                distance=_cosine_distance(vector, record.values),
                metadata=dict(record.metadata),
            )
            for record in ranked[:top_n]
        ]

    async def delete(self, ids: list[str]) -> None:
        for vector_id in ids:
            self.records.pop(vector_id, None)

    async def clear(self) -> None:
        self.records.clear()

    async def info(self) -> dict[str, Any]:
        return {"points_count": len(self.records), "vector_size": self.vector_size}


class InMemoryBackend(VectorBackend):
    """VectorBackend keeping collections in a dict."""

    def __init__(self) -> None:
        self.collections: dict[str, InMemoryCollection] = {}
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def list_collections(self) -> list[str]:
        return list(self.collections)

    async def create_collection(self, name: str, vector_size: int) -> None:
        self.collections[name] = InMemoryCollection(name, vector_size)

    async def get_collection(self, name: str) -> InMemoryCollection:
        if name not in self.collections:
            raise KeyError(f"Collection {name} not found")
        return self.collections[name]

    async def delete_collection(self, name: str) -> None:
        self.collections.pop(name, None)

    async def aclose(self) -> None:
        self.closed = True


def fake_vector(text: str) -> list[float]:
    """Deterministic 3-dimensional vector derived from the text."""
    vowels = sum(1 for char in text.lower() if char in "aeiou")
    spaces = text.count(" ")
    return [float(len(text) % 7 + 1), float(vowels + 1), float(spaces + 1)]


class FakeEmbedder(Embedder):
    """Embedder recording its calls; returns ``vectors`` verbatim when given."""

    embedding_max_chunk_length = 1000

    def __init__(self, vectors: list[list[float]] | None = None) -> None:
        self.chunk_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self._vectors = vectors

    async def embed_chunks(self, texts: list[str]) -> list[list[float]]:
        self.chunk_calls.append(list(texts))
        if self._vectors is not None:
            return self._vectors
        return [fake_vector(text) for text in texts]

    async def embed_text_input(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return fake_vector(text)


@pytest.fixture
def backend() -> InMemoryBackend:
    """In-memory vector backend."""
    return InMemoryBackend()


@pytest.fixture
def embedder() -> FakeEmbedder:
    """Deterministic fake embedder."""
    return FakeEmbedder()


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def metadata_db(tmp_path: Path) -> Iterator[MetadataDatabase]:
    """SQLite metadata database in a temporary directory."""
    db = MetadataDatabase(tmp_path / "metadata.sqlite3")
    yield db
    db.close()


@pytest.fixture
def namespaces(backend: InMemoryBackend) -> NamespaceManager:
    return NamespaceManager(backend)


@pytest.fixture
def cache(storage_dir: Path) -> EmbeddingCache:
    return EmbeddingCache(storage_dir)


@pytest.fixture
def document_vectors(metadata_db: MetadataDatabase) -> DocumentVectorStore:
    return DocumentVectorStore(metadata_db)


@pytest.fixture
def system_settings(metadata_db: MetadataDatabase) -> SystemSettings:
    return SystemSettings(metadata_db)


@pytest.fixture
def pipeline(
    namespaces: NamespaceManager,
    cache: EmbeddingCache,
    document_vectors: DocumentVectorStore,
    embedder: FakeEmbedder,
    system_settings: SystemSettings,
) -> IngestionPipeline:
    """IngestionPipeline wired to in-memory fakes."""
    return IngestionPipeline(
        namespaces=namespaces,
        cache=cache,
        document_vectors=document_vectors,
        embedder=embedder,
        settings=system_settings,
    )


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings isolated from the developer's environment."""
    for var in ("VECTOR_DB", "OPENAI_API_KEY", "QDRANT_URL", "QDRANT_PATH"):
        monkeypatch.delenv(var, raising=False)
    return Settings(
        _env_file=None,
        storage_dir=tmp_path / "storage",
        metadata_db_path=tmp_path / "metadata.sqlite3",
    )
