"""Open the three stores from settings."""

from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Iterator
from typing import NamedTuple

from sage.config import Settings
from sage.stores.docstore import DocStore
from sage.stores.files import FileStore
from sage.stores.vectorstore import VectorStore


class Stores(NamedTuple):
    docstore: DocStore
    vectorstore: VectorStore
    files: FileStore


@contextmanager
def open_stores(settings: Settings) -> Iterator[Stores]:
    """Yield docstore, vector store and file store; close them on exit."""
    docstore = DocStore(settings.docstore.path)
    try:
        vectorstore = VectorStore(settings.qdrant, embed_dim=settings.llm.embed_dim)
    except Exception:
        docstore.close()
        raise
    try:
        yield Stores(docstore, vectorstore, FileStore(settings.storage.dir))
    finally:
        vectorstore.close()
        docstore.close()
