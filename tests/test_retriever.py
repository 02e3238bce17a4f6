"""Tests for sage.query.retriever."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from conftest import unit
from sage.models import Chunk, DocStatus, Document
from sage.query.retriever import retrieve_top_k

DOC_A = str(uuid.uuid4())
DOC_B = str(uuid.uuid4())


def _add_doc(docstore, vectorstore, doc_id, vectors, status=DocStatus.COMPLETED):
    docstore.insert_document(
        Document(doc_id=doc_id, filename=f"{doc_id}.txt", content_hash=doc_id,
                 storage_path=f"/tmp/{doc_id}", status=status)
    )
    chunks = [Chunk(doc_id=doc_id, index=i, text=f"{doc_id[:4]} chunk {i}") for i in range(len(vectors))]
    docstore.replace_chunks(doc_id, chunks)
    vectorstore.upsert_chunks(chunks, vectors)
    return chunks


@pytest.fixture
def mock_embed():
    with patch("sage.llm.embed", new_callable=AsyncMock) as mock:
        mock.return_value = [[1.0, 0.2, 0.0, 0.0]]
        yield mock


@pytest.mark.asyncio
async def test_returns_closest_first(docstore, vectorstore, mock_embed):
    chunks = _add_doc(docstore, vectorstore, DOC_A, [unit(2), unit(0), unit(1)])

    results = await retrieve_top_k("refund policy?", vectorstore, docstore, top_k=3)

    assert [r.chunk_id for r in results] == [chunks[1].chunk_id, chunks[2].chunk_id, chunks[0].chunk_id]
    assert results[0].document_id == DOC_A
    assert results[0].text == chunks[1].text
    assert results[0].distance < results[1].distance < results[2].distance


@pytest.mark.asyncio
async def test_respects_top_k(docstore, vectorstore, mock_embed):
    _add_doc(docstore, vectorstore, DOC_A, [unit(0), unit(1), unit(2)])
    assert len(await retrieve_top_k("q?", vectorstore, docstore, top_k=2)) == 2


@pytest.mark.asyncio
async def test_ties_break_by_chunk_index(docstore, vectorstore, mock_embed):
    chunks = _add_doc(docstore, vectorstore, DOC_A, [unit(0), unit(0), unit(0)])
    results = await retrieve_top_k("q?", vectorstore, docstore, top_k=3)
    assert [r.chunk_id for r in results] == [c.chunk_id for c in chunks]


@pytest.mark.asyncio
async def test_only_completed_documents_are_searched(docstore, vectorstore, mock_embed):
    _add_doc(docstore, vectorstore, DOC_A, [unit(0)], status=DocStatus.PROCESSING)
    done = _add_doc(docstore, vectorstore, DOC_B, [unit(3)])

    results = await retrieve_top_k("q?", vectorstore, docstore, top_k=5)
    assert [r.chunk_id for r in results] == [done[0].chunk_id]


@pytest.mark.asyncio
async def test_document_scope(docstore, vectorstore, mock_embed):
    _add_doc(docstore, vectorstore, DOC_A, [unit(0)])
    scoped = _add_doc(docstore, vectorstore, DOC_B, [unit(3)])

    results = await retrieve_top_k("q?", vectorstore, docstore, top_k=5, document_ids=[DOC_B])
    assert [r.chunk_id for r in results] == [scoped[0].chunk_id]


@pytest.mark.asyncio
async def test_vectors_without_committed_chunk_are_ignored(docstore, vectorstore, mock_embed):
    committed = _add_doc(docstore, vectorstore, DOC_A, [unit(1)])
    # A vector written ahead of a chunk swap that never committed.
    vectorstore.upsert_chunks([Chunk(doc_id=DOC_A, index=0, text="pending")], [unit(0)])

    results = await retrieve_top_k("q?", vectorstore, docstore, top_k=5)
    assert [r.chunk_id for r in results] == [committed[0].chunk_id]


@pytest.mark.asyncio
async def test_empty_corpus_skips_embedding(docstore, vectorstore, mock_embed):
    assert await retrieve_top_k("q?", vectorstore, docstore) == []
    mock_embed.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("top_k", [0, 21, -1])
async def test_top_k_out_of_range(docstore, vectorstore, mock_embed, top_k):
    with pytest.raises(ValueError):
        await retrieve_top_k("q?", vectorstore, docstore, top_k=top_k)
