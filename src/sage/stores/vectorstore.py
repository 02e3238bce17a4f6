"""Qdrant embedded-mode vector store."""

from __future__ import annotations

from pathlib import Path

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    HasIdCondition,
    MatchAny,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from sage.config import QdrantConfig
from sage.models import Chunk


class VectorStore:
    """Qdrant vector store — runs in embedded mode (no server needed).

    Holds one point per chunk, keyed by chunk_id. The docstore remains the
    authority on which chunks exist; this index may briefly hold vectors of
    a chunk set that is being swapped in or out.
    """

    def __init__(
        self,
        cfg: QdrantConfig | None = None,
        *,
        embed_dim: int,
        in_memory: bool = False,
    ):
        cfg = cfg or QdrantConfig()
        self.collection = cfg.collection
        self.embed_dim = embed_dim

        if in_memory:
            self.client = QdrantClient(":memory:")
        elif cfg.url:
            self.client = QdrantClient(url=cfg.url)
        else:
            Path(cfg.path).mkdir(parents=True, exist_ok=True)
            self.client = QdrantClient(path=cfg.path)

        self._ensure_collection()

    def _ensure_collection(self) -> None:
        """Create the collection if it doesn't exist."""
        collections = [c.name for c in self.client.get_collections().collections]
        if self.collection not in collections:
            self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(
                    size=self.embed_dim,
                    distance=Distance.COSINE,
                ),
            )

    def upsert_chunks(self, chunks: list[Chunk], embeddings: list[list[float]]) -> None:
        """Store chunk embeddings with metadata in payload."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )
        if not chunks:
            return
        points = [
            PointStruct(
                id=chunk.chunk_id,
                vector=embedding,
                payload={
                    "chunk_id": chunk.chunk_id,
                    "doc_id": chunk.doc_id,
                    "index": chunk.index,
                },
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]
        self.client.upsert(collection_name=self.collection, points=points)

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 6,
        *,
        doc_ids: list[str] | None = None,
    ) -> list[dict]:
        """Return the top_k nearest chunks, closest first.

        ``distance`` is cosine distance (``1 - similarity``), so lower is closer.
        *doc_ids* restricts the search to those documents.
        """
        query_filter = None
        if doc_ids is not None:
            query_filter = Filter(
                must=[FieldCondition(key="doc_id", match=MatchAny(any=list(doc_ids)))]
            )
        results = self.client.query_points(
            collection_name=self.collection,
            query=query_embedding,
            query_filter=query_filter,
            limit=top_k,
            with_payload=True,
        )
        return [
            {
                "chunk_id": r.payload["chunk_id"],
                "doc_id": r.payload["doc_id"],
                "index": r.payload.get("index", 0),
                "distance": 1.0 - r.score,
            }
            for r in results.points
        ]

    def delete_by_doc_id(self, doc_id: str, *, keep: list[str] | None = None) -> None:
        """Delete all vectors for a document, except the chunk ids in *keep*."""
        must_not = [HasIdCondition(has_id=list(keep))] if keep else None
        self.client.delete(
            collection_name=self.collection,
            points_selector=Filter(
                must=[FieldCondition(key="doc_id", match=MatchValue(value=doc_id))],
                must_not=must_not,
            ),
        )

    def delete_chunks(self, chunk_ids: list[str]) -> None:
        if not chunk_ids:
            return
        self.client.delete(
            collection_name=self.collection,
            points_selector=PointIdsList(points=list(chunk_ids)),
        )

    def count(self) -> int:
        """Return the total number of vectors in the collection."""
        info = self.client.get_collection(self.collection)
        return info.points_count

    def close(self) -> None:
        self.client.close()
