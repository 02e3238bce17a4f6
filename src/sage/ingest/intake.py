"""Content-addressed intake — decides whether an upload needs processing.

Identity is the SHA-256 of the uploaded bytes:

- hash known and completed  → reuse the document, no job (full dedup)
- hash known, not completed → reuse document and stored file, new job
- hash unknown              → store bytes, new document, new job

Full dedup trusts the ``completed`` status and does not re-check that the
document's chunks are still present.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from pydantic import BaseModel

from sage.models import DocStatus, Document, EnqueueJobPayload, IngestionJob
from sage.stores.docstore import DocStore
from sage.stores.files import FileStore, sha256

log = logging.getLogger(__name__)

Enqueue = Callable[[EnqueueJobPayload], None]


class IntakeResult(BaseModel):
    document_id: str
    job_id: str | None
    status: DocStatus
    deduped: bool


class IntakeGate:
    """Accepts uploads and hands new jobs to *enqueue*."""

    def __init__(self, docstore: DocStore, files: FileStore, enqueue: Enqueue | None = None):
        self.docstore = docstore
        self.files = files
        self.enqueue = enqueue

    def accept(
        self,
        data: bytes,
        filename: str,
        mime_type: str | None = None,
    ) -> IntakeResult:
        content_hash = sha256(data)
        existing = self.docstore.find_document_by_hash(content_hash)

        if existing and existing.status is DocStatus.COMPLETED:
            log.info("Upload %s matches completed document %s", filename, existing.doc_id)
            return IntakeResult(
                document_id=existing.doc_id,
                job_id=None,
                status=DocStatus.COMPLETED,
                deduped=True,
            )

        if existing:
            doc_id = existing.doc_id
            log.info(
                "Upload %s matches %s document %s; reprocessing",
                filename, existing.status.value, doc_id,
            )
        else:
            doc_id = str(uuid.uuid4())
            storage_path = self.files.save_upload(doc_id, filename, data)
            self.docstore.insert_document(
                Document(
                    doc_id=doc_id,
                    filename=filename,
                    content_hash=content_hash,
                    mime_type=mime_type or "application/octet-stream",
                    storage_path=storage_path,
                    status=DocStatus.QUEUED,
                )
            )

        job = IngestionJob(doc_id=doc_id)
        self.docstore.insert_job(job)

        payload = EnqueueJobPayload(job_id=job.job_id, document_id=doc_id)
        if self.enqueue is not None:
            self.enqueue(payload)

        return IntakeResult(
            document_id=doc_id,
            job_id=job.job_id,
            status=DocStatus.QUEUED,
            deduped=False,
        )
