from unittest.mock import AsyncMock

import pytest

from rag_vectordb.deletion import DocumentDeletion
from rag_vectordb.ingestion import DocumentData
from rag_vectordb.storage.metadata_store import DocumentVectorMapping


@pytest.fixture
def deletion(namespaces, document_vectors) -> DocumentDeletion:
    return DocumentDeletion(namespaces, document_vectors)


@pytest.mark.anyio
async def test_ingest_then_delete_is_net_zero(
    pipeline, deletion, namespaces, document_vectors, system_settings
) -> None:
    """Deleting a document removes exactly the vectors its ingestion added."""
    await pipeline.ingest("proj", DocumentData(page_content="Keep me.", doc_id="keep"))
    before = await namespaces.count("proj")

    await system_settings.set_value("text_splitter_chunk_size", 20)
    await system_settings.set_value("text_splitter_chunk_overlap", 0)
    await pipeline.ingest(
        "proj",
        DocumentData(page_content="The sky is blue.\n\nThe grass is green.", doc_id="doc-1"),
    )
    assert await namespaces.count("proj") == before + 2

    assert await deletion.delete_document("proj", "doc-1") is True

    assert await namespaces.count("proj") == before
    assert await document_vectors.where("doc-1") == []
    assert len(await document_vectors.where("keep")) == 1


@pytest.mark.anyio
async def test_delete_in_missing_namespace_is_noop(deletion, document_vectors) -> None:
    await document_vectors.bulk_insert([DocumentVectorMapping(doc_id="doc-1", vector_id="v1")])

    assert await deletion.delete_document("missing", "doc-1") is False
    assert len(await document_vectors.where("doc-1")) == 1


@pytest.mark.anyio
async def test_delete_unknown_document_is_noop(pipeline, deletion, namespaces) -> None:
    await pipeline.ingest("proj", DocumentData(page_content="Keep me.", doc_id="keep"))

    assert await deletion.delete_document("proj", "unknown") is False
    assert await namespaces.count("proj") == 1


@pytest.mark.anyio
async def test_backend_failure_leaves_no_dangling_rows(
    pipeline, deletion, namespaces, document_vectors
) -> None:
    """Rows go first, so a failed vector delete only orphans vectors."""
    await pipeline.ingest("proj", DocumentData(page_content="The sky is blue.", doc_id="doc-1"))
    collection = await namespaces.get_or_none("proj")
    collection.delete = AsyncMock(side_effect=RuntimeError("backend down"))

    with pytest.raises(RuntimeError, match="backend down"):
        await deletion.delete_document("proj", "doc-1")

    assert await document_vectors.where("doc-1") == []
    assert await namespaces.count("proj") == 1
