"""SQLite-backed store for documents, ingestion jobs, chunks, and query runs."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from sage.errors import QueryRunNotFoundError
from sage.models import (
    Chunk,
    Citation,
    DocStatus,
    Document,
    Feedback,
    IngestionJob,
    JobUpdate,
    QueryRun,
)

_JOB_COLUMNS = frozenset({"status", "progress", "stage", "error_message"})


class DocStore:
    """Stores document, job, chunk and query-run records in SQLite."""

    def __init__(self, db_path: str = "./data/docstore.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), timeout=30)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_tables()

    def _init_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                doc_id       TEXT PRIMARY KEY,
                filename     TEXT NOT NULL,
                content_hash TEXT NOT NULL UNIQUE,
                mime_type    TEXT NOT NULL,
                storage_path TEXT NOT NULL,
                text_path    TEXT,
                status       TEXT NOT NULL DEFAULT 'queued',
                created_at   TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS ingestion_jobs (
                job_id        TEXT PRIMARY KEY,
                doc_id        TEXT NOT NULL REFERENCES documents(doc_id),
                status        TEXT NOT NULL DEFAULT 'queued',
                progress      INTEGER NOT NULL DEFAULT 0,
                stage         TEXT NOT NULL DEFAULT 'UPLOADED',
                error_message TEXT,
                created_at    TEXT NOT NULL,
                updated_at    TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_job_doc ON ingestion_jobs(doc_id);

            CREATE TABLE IF NOT EXISTS chunks (
                chunk_id       TEXT PRIMARY KEY,
                doc_id         TEXT NOT NULL REFERENCES documents(doc_id),
                idx            INTEGER NOT NULL,
                text           TEXT NOT NULL,
                token_estimate INTEGER NOT NULL DEFAULT 0
            );
            CREATE INDEX IF NOT EXISTS idx_chunk_doc ON chunks(doc_id);

            CREATE TABLE IF NOT EXISTS query_runs (
                query_id               TEXT PRIMARY KEY,
                question               TEXT NOT NULL,
                answer                 TEXT NOT NULL,
                confidence             REAL NOT NULL,
                missing_info           TEXT NOT NULL DEFAULT '[]',
                enrichment_suggestions TEXT NOT NULL DEFAULT '[]',
                used_external          INTEGER NOT NULL DEFAULT 0,
                citations              TEXT NOT NULL DEFAULT '[]',
                created_at             TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS feedback (
                feedback_id TEXT PRIMARY KEY,
                query_id    TEXT NOT NULL REFERENCES query_runs(query_id),
                rating      INTEGER NOT NULL,
                is_helpful  INTEGER NOT NULL,
                comment     TEXT,
                created_at  TEXT NOT NULL
            );
        """)
        self._conn.commit()

    # -- Documents -----------------------------------------------------------

    def insert_document(self, doc: Document) -> None:
        """Insert a new document record. Fails if the content hash is taken."""
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO documents
                    (doc_id, filename, content_hash, mime_type, storage_path, text_path, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    doc.doc_id,
                    doc.filename,
                    doc.content_hash,
                    doc.mime_type,
                    doc.storage_path,
                    doc.text_path,
                    doc.status.value,
                    doc.created_at.isoformat(),
                ),
            )

    def get_document(self, doc_id: str) -> Document | None:
        """Fetch a document by ID."""
        row = self._conn.execute(
            "SELECT * FROM documents WHERE doc_id = ?", (doc_id,)
        ).fetchone()
        return self._row_to_doc(row) if row else None

    def find_document_by_hash(self, content_hash: str) -> Document | None:
        """Fetch the document whose bytes hash to *content_hash*."""
        row = self._conn.execute(
            "SELECT * FROM documents WHERE content_hash = ?", (content_hash,)
        ).fetchone()
        return self._row_to_doc(row) if row else None

    def list_documents(self, limit: int = 200) -> list[Document]:
        """List documents, newest first."""
        rows = self._conn.execute(
            "SELECT * FROM documents ORDER BY created_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_doc(r) for r in rows]

    def set_document_status(self, doc_id: str, status: DocStatus) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE documents SET status = ? WHERE doc_id = ?", (status.value, doc_id)
            )

    def set_document_text_path(self, doc_id: str, text_path: str) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE documents SET text_path = ? WHERE doc_id = ?", (text_path, doc_id)
            )

    def completed_document_ids(self, restrict_to: list[str] | None = None) -> list[str]:
        """IDs of completed documents, optionally limited to *restrict_to*."""
        sql = "SELECT doc_id FROM documents WHERE status = ?"
        params: list = [DocStatus.COMPLETED.value]
        if restrict_to is not None:
            if not restrict_to:
                return []
            sql += f" AND doc_id IN ({', '.join('?' for _ in restrict_to)})"
            params.extend(restrict_to)
        return [r["doc_id"] for r in self._conn.execute(sql, params).fetchall()]

    # -- Jobs ----------------------------------------------------------------

    def insert_job(self, job: IngestionJob) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO ingestion_jobs
                    (job_id, doc_id, status, progress, stage, error_message, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.job_id,
                    job.doc_id,
                    job.status.value,
                    job.progress,
                    job.stage.value,
                    job.error_message,
                    job.created_at.isoformat(),
                    job.updated_at.isoformat(),
                ),
            )

    def get_job(self, job_id: str) -> IngestionJob | None:
        row = self._conn.execute(
            "SELECT * FROM ingestion_jobs WHERE job_id = ?", (job_id,)
        ).fetchone()
        return self._row_to_job(row) if row else None

    def update_job(self, job_id: str, update: JobUpdate) -> None:
        """Write the fields set on *update*; other columns are left alone."""
        changes = update.changes()
        if not changes:
            return
        unknown = set(changes) - _JOB_COLUMNS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        sets = ", ".join(f"{col} = ?" for col in changes)
        with self._conn:
            self._conn.execute(
                f"UPDATE ingestion_jobs SET {sets}, updated_at = ? WHERE job_id = ?",
                (*changes.values(), datetime.now(timezone.utc).isoformat(), job_id),
            )

    # -- Chunks --------------------------------------------------------------

    def replace_chunks(self, doc_id: str, chunks: list[Chunk]) -> None:
        """Swap a document's chunk set in one transaction.

        Readers see either the old set or the new set, never a mix.
        """
        with self._conn:
            self._conn.execute("DELETE FROM chunks WHERE doc_id = ?", (doc_id,))
            self._conn.executemany(
                """
                INSERT INTO chunks (chunk_id, doc_id, idx, text, token_estimate)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(c.chunk_id, doc_id, c.index, c.text, c.token_estimate) for c in chunks],
            )

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        """Fetch a chunk by ID."""
        row = self._conn.execute(
            "SELECT * FROM chunks WHERE chunk_id = ?", (chunk_id,)
        ).fetchone()
        return self._row_to_chunk(row) if row else None

    def get_chunks_for_doc(self, doc_id: str) -> list[Chunk]:
        """Get all chunks for a document, ordered by index."""
        rows = self._conn.execute(
            "SELECT * FROM chunks WHERE doc_id = ? ORDER BY idx", (doc_id,)
        ).fetchall()
        return [self._row_to_chunk(r) for r in rows]

    def get_completed_chunks(self, chunk_ids: list[str]) -> dict[str, Chunk]:
        """Look up chunks by ID, keeping only those of completed documents."""
        if not chunk_ids:
            return {}
        placeholders = ", ".join("?" for _ in chunk_ids)
        rows = self._conn.execute(
            f"""
            SELECT c.* FROM chunks c
            JOIN documents d ON d.doc_id = c.doc_id
            WHERE d.status = ? AND c.chunk_id IN ({placeholders})
            """,
            (DocStatus.COMPLETED.value, *chunk_ids),
        ).fetchall()
        return {r["chunk_id"]: self._row_to_chunk(r) for r in rows}

    # -- Query runs ----------------------------------------------------------

    def insert_query_run(self, run: QueryRun) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO query_runs
                    (query_id, question, answer, confidence, missing_info,
                     enrichment_suggestions, used_external, citations, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run.query_id,
                    run.question,
                    run.answer,
                    run.confidence,
                    json.dumps(run.missing_info),
                    json.dumps(run.enrichment_suggestions),
                    int(run.used_external),
                    json.dumps([c.model_dump(exclude_none=True) for c in run.citations]),
                    run.created_at.isoformat(),
                ),
            )

    def get_query_run(self, query_id: str) -> QueryRun | None:
        row = self._conn.execute(
            "SELECT * FROM query_runs WHERE query_id = ?", (query_id,)
        ).fetchone()
        return self._row_to_query_run(row) if row else None

    # -- Feedback ------------------------------------------------------------

    def insert_feedback(self, feedback: Feedback) -> None:
        if self.get_query_run(feedback.query_id) is None:
            raise QueryRunNotFoundError(f"query_id not found: {feedback.query_id}")
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO feedback (feedback_id, query_id, rating, is_helpful, comment, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    feedback.feedback_id,
                    feedback.query_id,
                    feedback.rating,
                    int(feedback.is_helpful),
                    feedback.comment,
                    feedback.created_at.isoformat(),
                ),
            )

    def list_feedback(self, query_id: str) -> list[Feedback]:
        rows = self._conn.execute(
            "SELECT * FROM feedback WHERE query_id = ? ORDER BY created_at", (query_id,)
        ).fetchall()
        return [
            Feedback(
                feedback_id=r["feedback_id"],
                query_id=r["query_id"],
                rating=r["rating"],
                is_helpful=bool(r["is_helpful"]),
                comment=r["comment"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        self._conn.close()

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> Document:
        return Document(
            doc_id=row["doc_id"],
            filename=row["filename"],
            content_hash=row["content_hash"],
            mime_type=row["mime_type"],
            storage_path=row["storage_path"],
            text_path=row["text_path"],
            status=row["status"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> IngestionJob:
        return IngestionJob(
            job_id=row["job_id"],
            doc_id=row["doc_id"],
            status=row["status"],
            progress=row["progress"],
            stage=row["stage"],
            error_message=row["error_message"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        return Chunk(
            chunk_id=row["chunk_id"],
            doc_id=row["doc_id"],
            index=row["idx"],
            text=row["text"],
            token_estimate=row["token_estimate"],
        )

    @staticmethod
    def _row_to_query_run(row: sqlite3.Row) -> QueryRun:
        return QueryRun(
            query_id=row["query_id"],
            question=row["question"],
            answer=row["answer"],
            confidence=row["confidence"],
            missing_info=json.loads(row["missing_info"]),
            enrichment_suggestions=json.loads(row["enrichment_suggestions"]),
            used_external=bool(row["used_external"]),
            citations=[Citation(**c) for c in json.loads(row["citations"])],
            created_at=row["created_at"],
        )
