"""Retriever — vector search restricted to completed documents."""

from __future__ import annotations

from sage import llm
from sage.config import LLMProfile
from sage.models import RetrievedChunk
from sage.stores.docstore import DocStore
from sage.stores.vectorstore import VectorStore

MAX_TOP_K = 20


async def retrieve_top_k(
    question: str,
    vectorstore: VectorStore,
    docstore: DocStore,
    *,
    top_k: int = 6,
    document_ids: list[str] | None = None,
    profile: LLMProfile | None = None,
) -> list[RetrievedChunk]:
    """Embed the question and return the closest committed chunks, closest first.

    Only chunks of documents with status ``completed`` are eligible. Ties in
    distance fall back to chunk index, then chunk id.
    """
    if not 1 <= top_k <= MAX_TOP_K:
        raise ValueError(f"top_k must be between 1 and {MAX_TOP_K}, got {top_k}")

    eligible = docstore.completed_document_ids(document_ids)
    if not eligible:
        return []

    query_emb = (await llm.embed([question], profile=profile))[0]
    hits = vectorstore.search(query_emb, top_k=top_k, doc_ids=eligible)

    # The docstore is the authority: vectors of a chunk set that is mid-swap
    # have no row here and are dropped.
    chunks = docstore.get_completed_chunks([h["chunk_id"] for h in hits])
    results = [
        (h["distance"], chunks[h["chunk_id"]].index, h["chunk_id"], h)
        for h in hits
        if h["chunk_id"] in chunks
    ]
    results.sort(key=lambda r: r[:3])

    return [
        RetrievedChunk(
            chunk_id=chunk_id,
            document_id=h["doc_id"],
            text=chunks[chunk_id].text,
            distance=distance,
        )
        for distance, _, chunk_id, h in results
    ]
