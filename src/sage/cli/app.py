"""sage CLI — Typer entrypoint with global options."""

from __future__ import annotations

import os
from typing import Annotated, Optional

import typer
from pydantic import ValidationError

app = typer.Typer(
    name="sage",
    help="sage CLI — ingest documents, ask questions, and inspect jobs.",
    no_args_is_help=True,
)

# Global state shared across subcommands
_state: dict = {"json": False}


def is_json() -> bool:
    """Check if --json output mode is active."""
    return _state["json"]


def reject_invalid(e: ValidationError) -> None:
    """Report a rejected request and exit with a usage error."""
    for err in e.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "request"
        typer.echo(f"Invalid {loc}: {err['msg']}", err=True)
    raise typer.Exit(code=2)


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON (agent-friendly)")
    ] = False,
    profile: Annotated[
        Optional[str], typer.Option("--profile", "-p", help="Override active LLM profile")
    ] = None,
    root: Annotated[
        Optional[str], typer.Option("--root", help="Override project root directory")
    ] = None,
):
    """Global options applied before any subcommand."""
    _state["json"] = json_output
    if root:
        os.environ["SAGE_ROOT"] = root
    if profile:
        os.environ["SAGE_ACTIVE_PROFILE"] = profile


# Register subcommands -------------------------------------------------------

from sage.cli.ask_cmd import ask_cmd, feedback_cmd  # noqa: E402
from sage.cli.doctor import doctor_cmd  # noqa: E402
from sage.cli.ingest_cmd import docs_cmd, ingest_cmd, job_cmd  # noqa: E402
from sage.cli.worker_cmd import worker_cmd  # noqa: E402

app.command(name="ingest", help="Upload a file (or every file in a folder) for ingestion.")(ingest_cmd)
app.command(name="job", help="Show the status of an ingestion job.")(job_cmd)
app.command(name="docs", help="List uploaded documents, newest first.")(docs_cmd)
app.command(name="ask", help="Ask a question against the uploaded documents.")(ask_cmd)
app.command(name="feedback", help="Rate an answer.")(feedback_cmd)
app.command(name="doctor", help="Check system health and connectivity.")(doctor_cmd)
app.command(name="worker", help="Run the ingestion worker.")(worker_cmd)
