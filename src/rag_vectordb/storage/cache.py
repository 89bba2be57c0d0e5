"""On-disk cache of chunk embeddings keyed by source file path."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import anyio

from rag_vectordb.vector.base import VectorRecord

logger = logging.getLogger(__name__)

CACHE_DIRNAME = "vector-cache"


def _is_chunk_batches(data: Any) -> bool:
    """Check for a list of batches, each a list of chunks carrying ``values``."""
    if not isinstance(data, list):
        return False
    for batch in data:
        if not isinstance(batch, list):
            return False
        for chunk in batch:
            if not isinstance(chunk, dict) or not isinstance(chunk.get("values"), list):
                return False
            if not isinstance(chunk.get("metadata", {}), dict | None):
                return False
    return True


@dataclass
class CacheLookup:
    """Result of a cache lookup: ordered chunk batches when ``exists``."""

    exists: bool
    chunks: list[list[dict[str, Any]]] = field(default_factory=list)


class EmbeddingCache:
    """Stores embedding results so unchanged documents skip re-embedding.

    Each source path maps to ``<storage_dir>/vector-cache/<uuid5>.json``
    holding a list of batches of ``{"id", "values", "metadata"}`` chunks.
    """

    def __init__(self, storage_dir: Path | str) -> None:
        self._cache_dir = Path(storage_dir) / CACHE_DIRNAME

    def cache_path(self, source_file_path: str) -> Path:
        """Return the cache file location for a source path."""
        key = uuid.uuid5(uuid.NAMESPACE_URL, source_file_path)
        return self._cache_dir / f"{key}.json"

    async def lookup(self, source_file_path: str | None) -> CacheLookup:
        """Return cached chunk batches for a source file, if any."""
        if not source_file_path:
            return CacheLookup(exists=False)

        path = anyio.Path(self.cache_path(source_file_path))
        if not await path.exists():
            return CacheLookup(exists=False)

        try:
            chunks = json.loads(await path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", path, exc)
            return CacheLookup(exists=False)

        if not _is_chunk_batches(chunks):
            logger.warning("Ignoring malformed cache file %s", path)
            return CacheLookup(exists=False)
        return CacheLookup(exists=True, chunks=chunks)

    async def store(
        self,
        chunk_batches: list[list[VectorRecord]],
        source_file_path: str | None,
    ) -> None:
        """Persist embedded chunk batches for a source file."""
        if not source_file_path:
            logger.debug("No source path given; embedding result not cached.")
            return

        directory = anyio.Path(self._cache_dir)
        await directory.mkdir(parents=True, exist_ok=True)
        payload = [[record.to_dict() for record in batch] for batch in chunk_batches]
        path = anyio.Path(self.cache_path(source_file_path))
        await path.write_text(json.dumps(payload), encoding="utf-8")
        logger.debug("Cached %d chunk batches at %s", len(payload), path)

    async def purge(self, source_file_path: str) -> bool:
        """Remove the cache entry for a source file. Returns whether one existed."""
        path = anyio.Path(self.cache_path(source_file_path))
        if not await path.exists():
            return False
        await path.unlink()
        return True
