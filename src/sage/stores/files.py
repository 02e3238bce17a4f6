"""Local file storage for uploaded bytes and extracted text."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

_UNSAFE = re.compile(r"[^\w.\-]+")


def sha256(data: bytes) -> str:
    """Hex SHA-256 of *data* — the content address of an upload."""
    return hashlib.sha256(data).hexdigest()


def safe_filename(name: str) -> str:
    return _UNSAFE.sub("_", name) or "upload"


class FileStore:
    """Stores uploads under ``<root>/uploads`` and extracted text under ``<root>/text``."""

    def __init__(self, root: str = "./data/storage"):
        self.root = Path(root)
        self.uploads_dir = self.root / "uploads"
        self.text_dir = self.root / "text"
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.text_dir.mkdir(parents=True, exist_ok=True)

    def save_upload(self, doc_id: str, original_name: str, data: bytes) -> str:
        """Write upload bytes and return the storage path."""
        path = self.uploads_dir / f"{doc_id}-{safe_filename(original_name)}"
        path.write_bytes(data)
        return str(path)

    def save_extracted_text(self, doc_id: str, text: str) -> str:
        """Write normalised text and return its path. Overwrites earlier runs."""
        path = self.text_dir / f"{doc_id}.txt"
        path.write_text(text, encoding="utf-8")
        return str(path)
