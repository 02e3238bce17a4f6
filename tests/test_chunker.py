"""Tests for sage.ingest.chunker."""

from __future__ import annotations

import pytest

from sage.ingest.chunker import chunk_document, chunk_text, estimate_tokens

_TEXT = "".join(chr(ord("a") + i % 26) for i in range(300))


def test_short_text_single_chunk():
    """Text no longer than chunk_size should produce one trimmed chunk."""
    chunks = chunk_text("  Hello world \n", chunk_size=1200)
    assert len(chunks) == 1
    assert chunks[0].text == "Hello world"
    assert chunks[0].index == 0


def test_text_exactly_chunk_size_is_one_chunk():
    chunks = chunk_text("x" * 100, chunk_size=100, chunk_overlap=20)
    assert len(chunks) == 1


def test_empty_text():
    assert chunk_text("") == []


def test_whitespace_only():
    assert chunk_text("   \n\n  ", chunk_size=4, chunk_overlap=1) == []


def test_window_advances_by_size_minus_overlap():
    chunks = chunk_text(_TEXT, chunk_size=100, chunk_overlap=20)
    # Windows start at 0, 80, 160, 240; the last one reaches the end.
    assert [c.text for c in chunks] == [_TEXT[0:100], _TEXT[80:180], _TEXT[160:260], _TEXT[240:300]]


def test_consecutive_chunks_overlap():
    chunks = chunk_text(_TEXT, chunk_size=100, chunk_overlap=20)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert prev.text[-20:] == nxt.text[:20]


def test_chunks_recover_original_text():
    chunks = chunk_text(_TEXT, chunk_size=100, chunk_overlap=20)
    rebuilt = chunks[0].text + "".join(c.text[20:] for c in chunks[1:])
    assert rebuilt == _TEXT


def test_blank_windows_are_dropped_and_indices_stay_contiguous():
    text = "alpha" + " " * 30 + "omega"
    chunks = chunk_text(text, chunk_size=10, chunk_overlap=0)
    assert [c.text for c in chunks] == ["alpha", "omega"]
    assert [c.index for c in chunks] == [0, 1]


def test_token_estimate_is_quarter_length_rounded_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    chunks = chunk_text("x" * 9, chunk_size=100, chunk_overlap=0)
    assert chunks[0].token_estimate == 3


@pytest.mark.parametrize(
    ("size", "overlap"),
    [(100, 100), (100, 150), (0, 0), (-5, 0), (100, -1)],
)
def test_invalid_window_raises(size, overlap):
    with pytest.raises(ValueError):
        chunk_text(_TEXT, chunk_size=size, chunk_overlap=overlap)


def test_chunk_document_binds_doc_and_fresh_ids():
    chunks = chunk_document("doc-1", _TEXT, chunk_size=100, chunk_overlap=20)
    assert len(chunks) == 4
    assert all(c.doc_id == "doc-1" for c in chunks)
    assert len({c.chunk_id for c in chunks}) == 4
    assert [c.index for c in chunks] == [0, 1, 2, 3]
