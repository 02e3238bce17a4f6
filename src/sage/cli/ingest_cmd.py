"""sage ingest / job / docs — upload documents and follow their ingestion."""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table


def _files_under(path: Path) -> list[Path]:
    if path.is_dir():
        return sorted(p for p in path.rglob("*") if p.is_file() and not p.name.startswith("."))
    return [path]


def ingest_cmd(
    path: Annotated[Path, typer.Argument(help="File or folder to upload")],
    mime: Annotated[
        Optional[str], typer.Option("--mime", help="MIME type (guessed from the file name if omitted)")
    ] = None,
    sync: Annotated[
        bool, typer.Option("--sync", help="Run the pipeline inline instead of queueing it")
    ] = False,
):
    """Upload documents; new content is queued for ingestion."""
    from sage.cli.app import is_json
    from sage.config import get_settings
    from sage.ingest.intake import IntakeGate
    from sage.ingest.pipeline import process_ingestion_job
    from sage.stores.factory import open_stores

    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s %(message)s",
    )

    resolved = path.resolve()
    if not resolved.exists():
        typer.echo(f"Path not found: {resolved}", err=True)
        raise typer.Exit(code=1)

    settings = get_settings()
    enqueue = None
    if not sync:
        from sage.worker.tasks import enqueue_ingestion

        enqueue = enqueue_ingestion

    results = []
    with open_stores(settings) as stores:
        gate = IntakeGate(stores.docstore, stores.files, enqueue=enqueue)
        for f in _files_under(resolved):
            mime_type = mime or mimetypes.guess_type(f.name)[0]
            result = gate.accept(f.read_bytes(), f.name, mime_type)
            status = result.status.value
            if sync and result.job_id is not None:
                try:
                    job = asyncio.run(
                        process_ingestion_job(
                            result.job_id,
                            result.document_id,
                            stores.docstore,
                            stores.vectorstore,
                            stores.files,
                            settings=settings,
                        )
                    )
                    status = job.status.value if job else status
                except Exception as e:
                    # Already logged and recorded on the job; keep going with the next file.
                    status = f"failed: {e}"
            results.append(
                {
                    "file": str(f),
                    "document_id": result.document_id,
                    "job_id": result.job_id,
                    "status": status,
                    "deduped": result.deduped,
                }
            )

    if is_json():
        print(json.dumps({"status": "ok", "uploaded": results}, indent=2))
        return

    console = Console()
    table = Table(title=f"Uploaded {len(results)} file(s)")
    table.add_column("File")
    table.add_column("Document")
    table.add_column("Job")
    table.add_column("Status")
    for r in results:
        status = "duplicate" if r["deduped"] else r["status"]
        table.add_row(Path(r["file"]).name, r["document_id"], r["job_id"] or "-", status)
    console.print(table)


def job_cmd(
    job_id: Annotated[str, typer.Argument(help="Ingestion job id")],
):
    """Show the status of an ingestion job."""
    from sage.cli.app import is_json
    from sage.config import get_settings
    from sage.stores.docstore import DocStore

    docstore = DocStore(get_settings().docstore.path)
    try:
        job = docstore.get_job(job_id)
    finally:
        docstore.close()

    if job is None:
        typer.echo(f"Job not found: {job_id}", err=True)
        raise typer.Exit(code=1)

    if is_json():
        print(json.dumps(job.model_dump(mode="json"), indent=2))
        return

    console = Console()
    table = Table(title=f"Job {job.job_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Document", job.doc_id)
    table.add_row("Status", job.status.value)
    table.add_row("Stage", job.stage.value)
    table.add_row("Progress", f"{job.progress}%")
    table.add_row("Updated", job.updated_at.isoformat())
    if job.error_message:
        table.add_row("Error", f"[red]{job.error_message}[/red]")
    console.print(table)


def docs_cmd(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum documents to list")] = 200,
):
    """List uploaded documents, newest first."""
    from sage.cli.app import is_json
    from sage.config import get_settings
    from sage.stores.docstore import DocStore

    docstore = DocStore(get_settings().docstore.path)
    try:
        docs = docstore.list_documents(limit=limit)
    finally:
        docstore.close()

    if is_json():
        print(json.dumps([d.model_dump(mode="json") for d in docs], indent=2))
        return

    console = Console()
    if not docs:
        console.print("[yellow]No documents uploaded yet.[/yellow]")
        return

    table = Table(title=f"{len(docs)} document(s)")
    table.add_column("Id")
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Created")
    for d in docs:
        table.add_row(d.doc_id, d.filename, d.mime_type, d.status.value, d.created_at.isoformat())
    console.print(table)
