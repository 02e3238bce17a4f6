"""Tests for sage.stores.vectorstore."""

from __future__ import annotations

import pytest

from conftest import EMBED_DIM, unit
from sage.models import Chunk

_UUID1 = "00000000-0000-0000-0000-000000000001"
_UUID2 = "00000000-0000-0000-0000-000000000002"
_UUID3 = "00000000-0000-0000-0000-000000000003"


@pytest.fixture
def sample_chunks():
    return [
        Chunk(chunk_id=_UUID1, doc_id="doc-1", text="Alpha", index=0),
        Chunk(chunk_id=_UUID2, doc_id="doc-1", text="Bravo", index=1),
        Chunk(chunk_id=_UUID3, doc_id="doc-2", text="Charlie", index=0),
    ]


@pytest.fixture
def loaded(vectorstore, sample_chunks):
    vectorstore.upsert_chunks(sample_chunks, [unit(0), unit(1), unit(2)])
    return vectorstore


def test_upsert_and_count(loaded):
    assert loaded.count() == 3


def test_upsert_rejects_mismatched_embeddings(vectorstore, sample_chunks):
    with pytest.raises(ValueError):
        vectorstore.upsert_chunks(sample_chunks, [unit(0)])


def test_search_orders_by_distance(loaded):
    query = [1.0, 0.5, 0.0, 0.0]
    results = loaded.search(query, top_k=3)
    assert [r["chunk_id"] for r in results] == [_UUID1, _UUID2, _UUID3]
    assert results[0]["distance"] < results[1]["distance"] < results[2]["distance"]
    assert results[2]["distance"] == pytest.approx(1.0)
    assert results[0]["doc_id"] == "doc-1"
    assert results[1]["index"] == 1


def test_search_respects_top_k(loaded):
    assert len(loaded.search(unit(0), top_k=1)) == 1


def test_search_restricted_to_documents(loaded):
    results = loaded.search(unit(0), top_k=3, doc_ids=["doc-2"])
    assert [r["chunk_id"] for r in results] == [_UUID3]


def test_delete_by_doc_id_keeps_listed_chunks(loaded):
    loaded.delete_by_doc_id("doc-1", keep=[_UUID2])
    remaining = {r["chunk_id"] for r in loaded.search(unit(0), top_k=3)}
    assert remaining == {_UUID2, _UUID3}


def test_delete_by_doc_id_removes_all(loaded):
    loaded.delete_by_doc_id("doc-1")
    assert loaded.count() == 1


def test_delete_chunks(loaded):
    loaded.delete_chunks([_UUID1, _UUID3])
    assert loaded.count() == 1
    loaded.delete_chunks([])
    assert loaded.count() == 1


def test_embed_dim_is_recorded(vectorstore):
    assert vectorstore.embed_dim == EMBED_DIM
