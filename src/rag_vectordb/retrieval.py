"""Similarity search over a namespace with threshold and pinned-source filtering."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from rag_vectordb.embedding.base import Embedder
from rag_vectordb.errors import InvalidArgumentError
from rag_vectordb.namespaces import NamespaceManager
from rag_vectordb.vector.base import VectorCollection
from rag_vectordb.vector.scoring import distance_to_similarity

logger = logging.getLogger(__name__)

NO_DOCUMENTS_MESSAGE = "Invalid query - no documents found for workspace!"
_INTERNAL_SOURCE_FIELDS = ("vector", "_distance")


@dataclass
class SimilarityResult:
    """Surviving matches as three index-aligned sequences."""

    context_texts: list[str] = field(default_factory=list)
    source_documents: list[dict[str, Any]] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)


@dataclass
class SearchResult:
    """Search output; ``message`` is set only when no search could run."""

    context_texts: list[str]
    sources: list[dict[str, Any]]
    message: str | None = None


def source_identifier(metadata: dict[str, Any]) -> str:
    """Identify the parent document of a chunk for pinned-source filtering.

    Chunks without both a title and a published timestamp get a random id,
    so they can never match a filter.
    """
    title = metadata.get("title")
    published = metadata.get("published")
    if not title or not published:
        return str(uuid.uuid4())
    return f"title:{title}-timestamp:{published}"


def curate_sources(sources: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Strip internal fields and drop sources left without metadata."""
    documents: list[dict[str, Any]] = []
    for source in sources:
        rest = dict(source)
        text = rest.pop("text", None)
        nested = rest.get("metadata")
        metadata = dict(nested) if isinstance(nested, dict) else rest
        for key in _INTERNAL_SOURCE_FIELDS:
            metadata.pop(key, None)

        if metadata:
            documents.append({**metadata, **({"text": text} if text else {})})
    return documents


class RetrievalEngine:
    """Answers nearest-neighbor queries against a namespace."""

    def __init__(self, namespaces: NamespaceManager) -> None:
        self._namespaces = namespaces

    async def search(
        self,
        namespace: str | None,
        query_text: str | None,
        embedder: Embedder | None,
        similarity_threshold: float = 0.25,
        top_n: int = 4,
        filter_identifiers: Iterable[str] | None = None,
    ) -> SearchResult:
        """Run a similarity search and return curated sources.

        Args:
            namespace: Namespace to search.
            query_text: Natural language query.
            embedder: Embedder used to vectorize the query.
            similarity_threshold: Minimum similarity (0-1) a match must reach.
            top_n: Number of nearest vectors to request from the backend.
            filter_identifiers: Source identifiers of pinned documents whose
                chunks must be excluded.

        Returns:
            SearchResult; a missing namespace yields an empty result with a
            message rather than an error.

        Raises:
            InvalidArgumentError: If namespace, query text, or embedder is missing.
        """
        if not namespace or not query_text or embedder is None:
            raise InvalidArgumentError("Invalid request to similarity search.")

        if not await self._namespaces.exists(namespace):
            return SearchResult(context_texts=[], sources=[], message=NO_DOCUMENTS_MESSAGE)
        collection = await self._namespaces.get_or_none(namespace)
        if collection is None:
            return SearchResult(context_texts=[], sources=[], message=NO_DOCUMENTS_MESSAGE)

        query_vector = await embedder.embed_text_input(query_text)
        result = await self.similarity_response(
            collection,
            query_vector,
            similarity_threshold=similarity_threshold,
            top_n=top_n,
            filter_identifiers=filter_identifiers,
        )

        sources = [
            {**document, "text": result.context_texts[i]}
            for i, document in enumerate(result.source_documents)
        ]
        return SearchResult(
            context_texts=result.context_texts,
            sources=curate_sources(sources),
        )

    async def similarity_response(
        self,
        collection: VectorCollection,
        query_vector: list[float],
        similarity_threshold: float = 0.25,
        top_n: int = 4,
        filter_identifiers: Iterable[str] | None = None,
    ) -> SimilarityResult:
        """Query the collection and keep matches passing both filters, in order."""
        excluded = set(filter_identifiers or ())
        matches = await collection.query(query_vector, top_n)

        result = SimilarityResult()
        for match in matches:
            similarity = distance_to_similarity(match.distance)
            if similarity < similarity_threshold:
                continue
            if source_identifier(match.metadata) in excluded:
                logger.info(
                    "A source was filtered from context as its parent document is pinned."
                )
                continue

            result.context_texts.append(match.metadata.get("text", ""))
            result.source_documents.append({**match.metadata, "score": similarity})
            result.scores.append(similarity)
        return result
