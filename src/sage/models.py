"""Shared domain models used across the system."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class DocStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class IngestionStage(str, Enum):
    """Checkpoints of an ingestion job, in pipeline order."""

    UPLOADED = "UPLOADED"
    TEXT_EXTRACTED = "TEXT_EXTRACTED"
    CHUNKED = "CHUNKED"
    EMBEDDING_CREATED = "EMBEDDING_CREATED"
    INDEXED = "INDEXED"
    COMPLETED = "COMPLETED"


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

class Document(BaseModel):
    """An uploaded file, identified by the hash of its bytes."""

    doc_id: str = Field(default_factory=_new_id)
    filename: str
    content_hash: str
    mime_type: str = "application/octet-stream"
    storage_path: str
    text_path: str | None = None
    status: DocStatus = DocStatus.QUEUED
    created_at: datetime = Field(default_factory=_now)


class IngestionJob(BaseModel):
    """One attempt series at turning a document into indexed chunks."""

    job_id: str = Field(default_factory=_new_id)
    doc_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    stage: IngestionStage = IngestionStage.UPLOADED
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class JobUpdate(BaseModel):
    """The fields to change on an ingestion job.

    Only fields passed explicitly are written, so ``JobUpdate(error_message=None)``
    clears the error while ``JobUpdate()`` touches nothing.
    """

    model_config = ConfigDict(frozen=True)

    status: JobStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    stage: IngestionStage | None = None
    error_message: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, mode="json")


class TextChunk(BaseModel):
    """Segmenter output, before it is bound to a document."""

    index: int
    text: str
    token_estimate: int


class Chunk(BaseModel):
    """A chunk of a document, ready for embedding."""

    chunk_id: str = Field(default_factory=_new_id)
    doc_id: str
    index: int
    text: str
    token_estimate: int = 0


class RetrievedChunk(BaseModel):
    chunk_id: str
    document_id: str
    text: str
    distance: float


class Citation(BaseModel):
    """A validated pointer from an answer back to its evidence."""

    source_type: Literal["doc_chunk", "external"]
    chunk_id: str | None = None
    document_id: str | None = None
    url: str | None = None
    title: str | None = None
    excerpt: str = Field(min_length=1)


class ExternalSnippet(BaseModel):
    """Evidence fetched from a trusted external source. Never persisted."""

    id: str
    url: str
    title: str
    text: str


class Grade(BaseModel):
    """Completeness grade of an answer against its context."""

    confidence: float = Field(ge=0.0, le=1.0)
    missing_info: list[str] = []


class QueryRun(BaseModel):
    """An answered question. Written once, never updated."""

    model_config = ConfigDict(frozen=True)

    query_id: str = Field(default_factory=_new_id)
    question: str
    answer: str
    confidence: float = Field(ge=0.0, le=1.0)
    missing_info: list[str] = []
    enrichment_suggestions: list[str] = []
    used_external: bool = False
    citations: list[Citation] = []
    created_at: datetime = Field(default_factory=_now)


class Feedback(BaseModel):
    feedback_id: str = Field(default_factory=_new_id)
    query_id: str
    rating: int
    is_helpful: bool
    comment: str | None = None
    created_at: datetime = Field(default_factory=_now)


# ---------------------------------------------------------------------------
# Request payloads (validated before any pipeline work)
# ---------------------------------------------------------------------------

class EnqueueJobPayload(BaseModel):
    job_id: UUID
    document_id: UUID


class QueryRequest(BaseModel):
    question: str = Field(min_length=3)
    top_k: int | None = Field(default=None, ge=1, le=20)
    document_ids: list[UUID] | None = None


class FeedbackRequest(BaseModel):
    query_id: UUID
    rating: int = Field(ge=1, le=5)
    is_helpful: bool
    comment: str | None = Field(default=None, max_length=1000)
