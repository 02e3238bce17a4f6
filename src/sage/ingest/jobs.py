"""Ingestion job state machine.

A job moves linearly through the pipeline stages:

    queued ─▶ processing/UPLOADED ─▶ TEXT_EXTRACTED ─▶ CHUNKED
           ─▶ EMBEDDING_CREATED ─▶ INDEXED ─▶ completed/COMPLETED

Any non-terminal state may fail. A failed job, or one left mid-pipeline by a
crashed worker, may be restarted from the top; the queue's retry policy is
what triggers this. ``transition`` is the only place that decides whether a
move is legal and what gets written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sage.errors import InvalidTransitionError
from sage.models import IngestionJob, IngestionStage, JobStatus, JobUpdate

log = logging.getLogger(__name__)

State = tuple[JobStatus, IngestionStage]

STAGE_PROGRESS: dict[IngestionStage, int] = {
    IngestionStage.UPLOADED: 5,
    IngestionStage.TEXT_EXTRACTED: 20,
    IngestionStage.CHUNKED: 40,
    IngestionStage.EMBEDDING_CREATED: 70,
    IngestionStage.INDEXED: 90,
    IngestionStage.COMPLETED: 100,
}

_PIPELINE: list[IngestionStage] = [
    IngestionStage.UPLOADED,
    IngestionStage.TEXT_EXTRACTED,
    IngestionStage.CHUNKED,
    IngestionStage.EMBEDDING_CREATED,
    IngestionStage.INDEXED,
]

_START: State = (JobStatus.PROCESSING, IngestionStage.UPLOADED)
_DONE: State = (JobStatus.COMPLETED, IngestionStage.COMPLETED)


def _build_transitions() -> dict[State, frozenset[State]]:
    table: dict[State, set[State]] = {}

    # Fresh start, and restart after a failed attempt at any stage.
    for status in (JobStatus.QUEUED, JobStatus.FAILED):
        for stage in IngestionStage:
            if stage is not IngestionStage.COMPLETED:
                table.setdefault((status, stage), set()).add(_START)

    # Linear progression; a redelivered job may restart mid-pipeline.
    for current, following in zip(_PIPELINE, _PIPELINE[1:] + [IngestionStage.COMPLETED]):
        state = (JobStatus.PROCESSING, current)
        nxt = _DONE if following is IngestionStage.COMPLETED else (JobStatus.PROCESSING, following)
        table.setdefault(state, set()).update({nxt, _START, (JobStatus.FAILED, current)})

    # Failure before processing starts (e.g. the document record vanished).
    table[(JobStatus.QUEUED, IngestionStage.UPLOADED)].add(
        (JobStatus.FAILED, IngestionStage.UPLOADED)
    )

    return {k: frozenset(v) for k, v in table.items()}


TRANSITIONS: dict[State, frozenset[State]] = _build_transitions()


def is_terminal(job: IngestionJob) -> bool:
    return (job.status, job.stage) == _DONE


def transition(
    job: IngestionJob,
    status: JobStatus,
    stage: IngestionStage | None = None,
    *,
    error_message: str | None = None,
) -> JobUpdate:
    """Validate a move of *job* to ``(status, stage)`` and return the fields to write.

    *stage* defaults to the job's current stage (used for failures, which
    keep the stage they failed at). Progress follows ``STAGE_PROGRESS`` and is
    left untouched on failure.

    Raises:
        InvalidTransitionError: If the move is not in ``TRANSITIONS``.
    """
    target: State = (status, stage or job.stage)
    allowed = TRANSITIONS.get((job.status, job.stage), frozenset())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Job {job.job_id}: cannot move from "
            f"{job.status.value}/{job.stage.value} to {target[0].value}/{target[1].value}"
        )

    if status is JobStatus.FAILED:
        return JobUpdate(status=status, error_message=error_message or "Ingestion failed")

    return JobUpdate(
        status=status,
        stage=target[1],
        progress=STAGE_PROGRESS[target[1]],
        error_message=None,
    )


def apply(job: IngestionJob, update: JobUpdate) -> IngestionJob:
    """Return a copy of *job* with *update* applied."""
    fields = dict(update.model_dump(exclude_unset=True))
    fields["updated_at"] = datetime.now(timezone.utc)
    return job.model_copy(update=fields)


class JobStateMachine:
    """Drives one job through its transitions, persisting each one.

    Args:
        docstore: Anything with ``update_job(job_id, JobUpdate)``.
        job: The job as currently persisted.
    """

    def __init__(self, docstore, job: IngestionJob):
        self._docstore = docstore
        self.job = job

    def _move(
        self,
        status: JobStatus,
        stage: IngestionStage | None = None,
        *,
        error_message: str | None = None,
    ) -> IngestionJob:
        update = transition(self.job, status, stage, error_message=error_message)
        self._docstore.update_job(self.job.job_id, update)
        self.job = apply(self.job, update)
        log.debug(
            "Job %s -> %s/%s (%d%%)",
            self.job.job_id, self.job.status.value, self.job.stage.value, self.job.progress,
        )
        return self.job

    def start(self) -> IngestionJob:
        return self._move(JobStatus.PROCESSING, IngestionStage.UPLOADED)

    def advance(self, stage: IngestionStage) -> IngestionJob:
        return self._move(JobStatus.PROCESSING, stage)

    def complete(self) -> IngestionJob:
        return self._move(JobStatus.COMPLETED, IngestionStage.COMPLETED)

    def fail(self, error_message: str) -> IngestionJob:
        return self._move(JobStatus.FAILED, error_message=error_message)
