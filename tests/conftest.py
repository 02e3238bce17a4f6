"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

# Ensure tests run from the project root so config.default.yaml is found
PROJECT_ROOT = Path(__file__).parent.parent

# The Celery app reads its settings at import time, before any fixture runs.
os.environ.setdefault("SAGE_ROOT", str(PROJECT_ROOT))
os.environ.setdefault("SAGE_QUEUE__BROKER_URL", "memory://")
os.environ.setdefault("SAGE_QUEUE__RESULT_BACKEND", "cache+memory://")

EMBED_DIM = 4


@pytest.fixture(autouse=True)
def _set_project_root(monkeypatch, tmp_path):
    """Point SAGE_ROOT at the project root and use tmp_path for data."""
    monkeypatch.setenv("SAGE_ROOT", str(PROJECT_ROOT))
    monkeypatch.setenv("SAGE_QDRANT__PATH", str(tmp_path / "qdrant"))
    monkeypatch.setenv("SAGE_DOCSTORE__PATH", str(tmp_path / "docstore.db"))
    monkeypatch.setenv("SAGE_STORAGE__DIR", str(tmp_path / "storage"))

    # Reset settings cache between tests
    from sage.config import reset_settings
    reset_settings()


@pytest.fixture
def docstore(tmp_path):
    from sage.stores.docstore import DocStore

    db = DocStore(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture
def vectorstore():
    from sage.stores.vectorstore import VectorStore

    store = VectorStore(embed_dim=EMBED_DIM, in_memory=True)
    yield store
    store.close()


@pytest.fixture
def files(tmp_path):
    from sage.stores.files import FileStore

    return FileStore(str(tmp_path / "storage"))


def unit(i: int) -> list[float]:
    """Basis vector *i* of the test embedding space."""
    v = [0.0] * EMBED_DIM
    v[i % EMBED_DIM] = 1.0
    return v
