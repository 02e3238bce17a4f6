"""Ingestion pipeline — drives one job through extract → chunk → embed → index."""

from __future__ import annotations

import asyncio
import logging

from sage import llm
from sage.config import Settings
from sage.errors import DocumentNotFoundError, InvalidTransitionError
from sage.ingest.chunker import chunk_document
from sage.ingest.extractors import extract_text
from sage.ingest.jobs import JobStateMachine, is_terminal
from sage.models import Chunk, DocStatus, IngestionJob, IngestionStage
from sage.stores.docstore import DocStore
from sage.stores.files import FileStore
from sage.stores.vectorstore import VectorStore

log = logging.getLogger(__name__)


def index_chunks(
    doc_id: str,
    chunks: list[Chunk],
    embeddings: list[list[float]],
    docstore: DocStore,
    vectorstore: VectorStore,
) -> None:
    """Swap in a document's new chunk set.

    Vectors go in first; the docstore swap is the commit point. Retrieval
    only returns chunks the docstore knows, so vectors of either generation
    are invisible until (or after) the swap. Stale vectors are pruned last.
    """
    new_ids = [c.chunk_id for c in chunks]
    vectorstore.upsert_chunks(chunks, embeddings)
    try:
        docstore.replace_chunks(doc_id, chunks)
    except Exception:
        vectorstore.delete_chunks(new_ids)
        raise
    vectorstore.delete_by_doc_id(doc_id, keep=new_ids)


async def process_ingestion_job(
    job_id: str,
    document_id: str,
    docstore: DocStore,
    vectorstore: VectorStore,
    files: FileStore,
    *,
    settings: Settings,
) -> IngestionJob | None:
    """Run the full pipeline for one job.

    On failure the job and document are marked failed and the exception is
    re-raised so the queue can retry the whole pipeline from the top.

    Returns:
        The final job state, or None if the job does not exist.
    """
    job = docstore.get_job(job_id)
    if job is None:
        log.warning("Job %s not found; nothing to do", job_id)
        return None
    if is_terminal(job):
        log.info("Job %s already completed; skipping", job_id)
        return job

    machine = JobStateMachine(docstore, job)
    try:
        machine.start()
        docstore.set_document_status(document_id, DocStatus.PROCESSING)

        doc = docstore.get_document(document_id)
        if doc is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}")

        log.info("Ingesting %s (job %s)", doc.filename, job_id)

        text = await asyncio.to_thread(extract_text, doc.mime_type, doc.storage_path, settings.ocr)
        text_path = files.save_extracted_text(document_id, text)
        docstore.set_document_text_path(document_id, text_path)
        machine.advance(IngestionStage.TEXT_EXTRACTED)

        chunks = chunk_document(
            document_id,
            text,
            chunk_size=settings.chunker.chunk_size,
            chunk_overlap=settings.chunker.chunk_overlap,
        )
        machine.advance(IngestionStage.CHUNKED)

        embeddings = await llm.embed([c.text for c in chunks], profile=settings.llm)
        if len(embeddings) != len(chunks):
            raise RuntimeError(
                f"Embedding service returned {len(embeddings)} vectors for {len(chunks)} chunks"
            )
        machine.advance(IngestionStage.EMBEDDING_CREATED)

        index_chunks(document_id, chunks, embeddings, docstore, vectorstore)
        machine.advance(IngestionStage.INDEXED)

        machine.complete()
        docstore.set_document_status(document_id, DocStatus.COMPLETED)
        log.info("Ingested %s: %d chunks", doc.filename, len(chunks))
        return machine.job

    except Exception as e:
        log.exception("Ingestion job %s failed", job_id)
        try:
            machine.fail(str(e) or type(e).__name__)
        except InvalidTransitionError:
            log.warning("Job %s could not be marked failed from %s", job_id, machine.job.status.value)
        docstore.set_document_status(document_id, DocStatus.FAILED)
        raise
