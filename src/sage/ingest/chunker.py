"""Fixed-window text chunker with overlap.

Slides a window of ``chunk_size`` characters over the text, advancing by
``chunk_size - chunk_overlap`` each step. Windows that are blank after
trimming are dropped, so chunk indices stay contiguous.
"""

from __future__ import annotations

import math

from sage.models import Chunk, TextChunk


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def chunk_text(
    text: str,
    chunk_size: int = 1200,
    chunk_overlap: int = 200,
) -> list[TextChunk]:
    """Split text into overlapping, trimmed, 0-indexed chunks.

    Raises:
        ValueError: If the window could never advance
            (``chunk_overlap >= chunk_size``) or either size is negative.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap must not be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
        )

    chunks: list[TextChunk] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        piece = text[start:end].strip()
        if piece:
            chunks.append(
                TextChunk(index=len(chunks), text=piece, token_estimate=estimate_tokens(piece))
            )
        if end == len(text):
            break
        start = max(end - chunk_overlap, 0)

    return chunks


def chunk_document(
    doc_id: str,
    text: str,
    *,
    chunk_size: int = 1200,
    chunk_overlap: int = 200,
) -> list[Chunk]:
    """Chunk a document's text and bind each piece to *doc_id* with a fresh chunk id."""
    return [
        Chunk(doc_id=doc_id, index=c.index, text=c.text, token_estimate=c.token_estimate)
        for c in chunk_text(text, chunk_size, chunk_overlap)
    ]
