"""Celery task that runs the ingestion pipeline for one job."""

from __future__ import annotations

import asyncio
import logging

from celery import Task
from pydantic import ValidationError

from sage.config import get_settings
from sage.ingest.pipeline import process_ingestion_job
from sage.models import EnqueueJobPayload
from sage.stores.factory import open_stores
from sage.worker.celery_app import celery_app

log = logging.getLogger(__name__)

_queue = get_settings().queue


def retry_countdown(retries: int, *, base: float | None = None, maximum: float | None = None) -> float:
    """Seconds to wait before the next attempt: base, 2×base, 4×base, ..."""
    base = _queue.backoff_seconds if base is None else base
    maximum = _queue.backoff_max_seconds if maximum is None else maximum
    return min(maximum, base * (2 ** retries))


@celery_app.task(
    bind=True,
    name="sage.ingest_document",
    max_retries=_queue.max_attempts - 1,
    acks_late=True,
)
def ingest_document_task(self: Task, job_id: str, document_id: str) -> dict:
    """Validate the payload and run the pipeline; retry with exponential backoff."""
    try:
        payload = EnqueueJobPayload(job_id=job_id, document_id=document_id)
    except ValidationError:
        log.error("Rejecting malformed ingestion payload job=%r document=%r", job_id, document_id)
        raise

    attempt = self.request.retries + 1
    log.info("Ingestion job %s attempt %d/%d", job_id, attempt, (self.max_retries or 0) + 1)

    settings = get_settings()
    try:
        with open_stores(settings) as stores:
            job = asyncio.run(
                process_ingestion_job(
                    str(payload.job_id),
                    str(payload.document_id),
                    stores.docstore,
                    stores.vectorstore,
                    stores.files,
                    settings=settings,
                )
            )
    except Exception as exc:
        countdown = retry_countdown(self.request.retries)
        log.warning("Ingestion job %s failed (%s); retrying in %.1fs", job_id, exc, countdown)
        raise self.retry(exc=exc, countdown=countdown)

    return {
        "job_id": job_id,
        "document_id": document_id,
        "status": job.status.value if job else "missing",
    }


def enqueue_ingestion(payload: EnqueueJobPayload) -> None:
    """Hand a job to the queue."""
    ingest_document_task.apply_async(
        kwargs={"job_id": str(payload.job_id), "document_id": str(payload.document_id)},
        queue=_queue.queue_name,
    )
