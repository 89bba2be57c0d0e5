"""Removal of a single document's vectors from a namespace."""

from __future__ import annotations

import logging

from rag_vectordb.namespaces import NamespaceManager
from rag_vectordb.storage.metadata_store import DocumentVectorStore

logger = logging.getLogger(__name__)


class DocumentDeletion:
    """Deletes the vectors a document owns, keeping mapping rows consistent.

    Mapping rows are removed before the backend vectors: if the backend call
    fails, the worst case is orphaned vectors, never mapping rows that point
    at vectors which no longer exist.
    """

    def __init__(
        self,
        namespaces: NamespaceManager,
        document_vectors: DocumentVectorStore,
    ) -> None:
        self._namespaces = namespaces
        self._document_vectors = document_vectors

    async def delete_document(self, namespace: str, doc_id: str) -> bool:
        """Delete every vector belonging to ``doc_id`` in ``namespace``.

        Returns:
            True if vectors were deleted, False if there was nothing to do.
        """
        if not await self._namespaces.has_namespace(namespace):
            logger.error(
                "delete_document - namespace %s does not exist.", namespace
            )
            return False

        collection = await self._namespaces.get_or_none(namespace)
        if collection is None:
            logger.error("delete_document - namespace %s could not be fetched.", namespace)
            return False

        rows = await self._document_vectors.where(doc_id)
        vector_ids = [row.vector_id for row in rows]
        if not vector_ids:
            return False

        await self._document_vectors.delete_for_document(doc_id)
        await collection.delete(vector_ids)
        logger.info(
            "Deleted %d vectors for document %s from %s", len(vector_ids), doc_id, namespace
        )
        return True
