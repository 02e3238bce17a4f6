"""Celery application for ingestion jobs."""

from __future__ import annotations

from celery import Celery

from sage.config import get_settings

_queue = get_settings().queue

celery_app = Celery(
    "sage",
    broker=_queue.broker_url,
    backend=_queue.result_backend,
    include=["sage.worker.tasks"],
)

celery_app.conf.task_routes = {
    "sage.ingest_document": {"queue": _queue.queue_name},
}

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=_queue.concurrency,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Successful jobs leave nothing behind; failures stay inspectable.
    task_ignore_result=True,
    task_store_errors_even_if_ignored=True,
    task_always_eager=_queue.eager,
    task_soft_time_limit=60 * 30,
)
