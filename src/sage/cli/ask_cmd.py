"""sage ask / feedback — question answering and answer ratings."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question to ask")],
    top_k: Annotated[
        Optional[int], typer.Option("--top-k", "-k", help="Number of chunks to retrieve (1-20)")
    ] = None,
    document: Annotated[
        Optional[str], typer.Option("--document", "-d", help="Only search this document id")
    ] = None,
):
    """Ask a question against the uploaded documents."""
    from sage.cli.app import is_json, reject_invalid
    from sage.config import get_settings
    from sage.models import QueryRequest
    from sage.query.engine import QueryEngine
    from sage.stores.factory import open_stores

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")

    try:
        request = QueryRequest(
            question=question,
            top_k=top_k,
            document_ids=[document] if document else None,
        )
    except ValidationError as e:
        reject_invalid(e)

    settings = get_settings()
    with open_stores(settings) as stores:
        engine = QueryEngine(stores.docstore, stores.vectorstore, settings)
        run = asyncio.run(engine.answer(request))

    if is_json():
        print(json.dumps({"status": "ok", **run.model_dump(mode="json", exclude_none=True)}, indent=2))
        return

    console = Console()
    style = "green" if run.confidence >= settings.query.enrich_threshold else "yellow"
    console.print(
        Panel(
            Markdown(run.answer),
            title=f"Answer (confidence {run.confidence:.2f})",
            subtitle="uses external sources" if run.used_external else None,
            border_style=style,
        )
    )

    if run.citations:
        console.print("\n[bold]Sources:[/bold]")
        for i, c in enumerate(run.citations, 1):
            if c.source_type == "external":
                source = c.title or c.url or "external"
                console.print(f"  [E{i}] {source}: {c.excerpt}")
            else:
                console.print(f"  [D{i}] doc {c.document_id or '?'}: {c.excerpt}")

    if run.missing_info:
        console.print("\n[bold]Missing information:[/bold]")
        for m in run.missing_info:
            console.print(f"  - {m}")

    if run.enrichment_suggestions:
        console.print("\n[bold]Suggestions:[/bold]")
        for s in run.enrichment_suggestions:
            console.print(f"  - {s}")

    console.print(f"\n[dim]query id: {run.query_id}[/dim]")


def feedback_cmd(
    query_id: Annotated[str, typer.Argument(help="Query id printed by `sage ask`")],
    rating: Annotated[int, typer.Option("--rating", "-r", help="Rating from 1 to 5")],
    helpful: Annotated[
        bool, typer.Option("--helpful/--not-helpful", help="Was the answer helpful?")
    ] = True,
    comment: Annotated[
        Optional[str], typer.Option("--comment", "-c", help="Free-text comment")
    ] = None,
):
    """Rate an answer."""
    from sage.cli.app import is_json, reject_invalid
    from sage.config import get_settings
    from sage.errors import QueryRunNotFoundError
    from sage.models import FeedbackRequest
    from sage.query.engine import submit_feedback
    from sage.stores.docstore import DocStore

    try:
        request = FeedbackRequest(
            query_id=query_id,
            rating=rating,
            is_helpful=helpful,
            comment=comment,
        )
    except ValidationError as e:
        reject_invalid(e)

    docstore = DocStore(get_settings().docstore.path)
    try:
        feedback = submit_feedback(docstore, request)
    except QueryRunNotFoundError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    finally:
        docstore.close()

    if is_json():
        print(json.dumps({"status": "ok", "feedback_id": feedback.feedback_id}, indent=2))
    else:
        Console().print(f"[green]Feedback recorded[/green] ({feedback.feedback_id})")
