"""sage worker — run the Celery ingestion worker."""

from __future__ import annotations

from typing import Annotated, Optional

import typer


def worker_cmd(
    concurrency: Annotated[
        Optional[int], typer.Option("--concurrency", "-c", help="Parallel jobs (default from config)")
    ] = None,
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Worker log level")] = "INFO",
):
    """Consume ingestion jobs from the queue."""
    from sage.config import get_settings
    from sage.worker.celery_app import celery_app

    queue = get_settings().queue
    celery_app.worker_main(
        [
            "worker",
            "--queues", queue.queue_name,
            "--concurrency", str(concurrency or queue.concurrency),
            "--loglevel", loglevel,
        ]
    )
