"""Citation validation.

Model output is untrusted: unknown source types and empty excerpts are
dropped, excerpts are capped, and id fields that are not UUIDs are removed
from the citation rather than rejecting it.
"""

from __future__ import annotations

import re
from typing import Any

from sage.models import Citation

EXCERPT_MAX_CHARS = 220
SOURCE_TYPES = frozenset({"doc_chunk", "external"})

_UUID = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def pick_uuid(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    m = _UUID.search(value)
    return m.group(0) if m else None


def _non_empty_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def validate_citation(raw: Any, *, max_chars: int = EXCERPT_MAX_CHARS) -> Citation | None:
    if not isinstance(raw, dict):
        return None
    source_type = raw.get("source_type")
    if source_type not in SOURCE_TYPES:
        return None

    excerpt = raw.get("excerpt")
    excerpt = "" if excerpt is None else str(excerpt)[:max_chars]
    if not excerpt:
        return None

    return Citation(
        source_type=source_type,
        chunk_id=pick_uuid(raw.get("chunk_id")),
        document_id=pick_uuid(raw.get("document_id")),
        url=_non_empty_str(raw.get("url")),
        title=_non_empty_str(raw.get("title")),
        excerpt=excerpt,
    )


def validate_citations(raw: list[Any] | None, *, max_chars: int = EXCERPT_MAX_CHARS) -> list[Citation]:
    """Validate model-supplied citations, keeping order."""
    out: list[Citation] = []
    for item in raw or []:
        citation = validate_citation(item, max_chars=max_chars)
        if citation is not None:
            out.append(citation)
    return out
