"""sage doctor — validate config, connectivity, and credentials."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

# Provider prefix of a LiteLLM model string → the key it needs.
_PROVIDER_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}


async def _check_config() -> tuple[bool, str]:
    """Verify config loads without error."""
    try:
        from sage.config import get_settings
        settings = get_settings()
        profile = settings.llm
        return True, f"profile={settings.active_profile}, chat={profile.chat_model}"
    except Exception as e:
        return False, str(e)


async def _check_env_vars() -> tuple[bool, str]:
    """Check that the API keys the active profile needs are set."""
    try:
        from sage.config import get_settings
        profile = get_settings().llm
    except Exception as e:
        return False, str(e)

    needed = []
    for model in (profile.chat_model, profile.embed_model):
        var = _PROVIDER_KEYS.get(model.split("/", 1)[0])
        if var and var not in needed:
            needed.append(var)
    if not needed:
        return True, "no API keys required"
    missing = [v for v in needed if not os.environ.get(v)]
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, f"{', '.join(needed)} set"


async def _check_data_dirs() -> tuple[bool, str]:
    """Verify data directories are writable."""
    try:
        from sage.config import get_settings
        settings = get_settings()
        dirs = [
            Path(settings.docstore.path).parent,
            Path(settings.storage.dir),
        ]
        if not settings.qdrant.url:
            dirs.append(Path(settings.qdrant.path))
        for d in dirs:
            d.mkdir(parents=True, exist_ok=True)
        return True, "all data directories writable"
    except Exception as e:
        return False, str(e)


async def _check_stores() -> tuple[bool, str]:
    """Open the docstore and vector index."""
    try:
        from sage.config import get_settings
        from sage.stores.factory import open_stores
        with open_stores(get_settings()) as stores:
            n_docs = len(stores.docstore.list_documents())
            n_vectors = stores.vectorstore.count()
        return True, f"{n_docs} document(s), {n_vectors} vector(s)"
    except Exception as e:
        return False, str(e)


async def _check_ocr() -> tuple[bool, str]:
    """Check the OCR toolchain used for scanned PDFs and images."""
    try:
        import shutil

        import pytesseract
        from sage.config import get_settings
        if not get_settings().ocr.enabled:
            return True, "disabled"
        version = pytesseract.get_tesseract_version()
        if shutil.which("pdftoppm") is None:
            return False, f"tesseract {version}, but pdftoppm (poppler) not found"
        return True, f"tesseract {version}, pdftoppm found"
    except Exception as e:
        return False, str(e)


async def _check_llm() -> tuple[bool, str]:
    """Call LiteLLM with a trivial prompt."""
    try:
        from sage.llm import complete
        answer = await complete(
            [{"role": "user", "content": "Reply with exactly: OK"}],
            max_tokens=10,
        )
        return True, f"got response ({len(answer)} chars)"
    except Exception as e:
        return False, str(e)


async def _check_embed() -> tuple[bool, str]:
    """Call LiteLLM embedding with a trivial input."""
    try:
        from sage.config import get_settings
        from sage.llm import embed
        vectors = await embed(["test"])
        dim = len(vectors[0])
        expected = get_settings().llm.embed_dim
        if dim != expected:
            return False, f"dim={dim}, profile expects {expected}"
        return True, f"dim={dim}"
    except Exception as e:
        return False, str(e)


async def _run_checks() -> list[dict]:
    """Run all checks and return results."""
    checks = [
        ("Config", _check_config),
        ("Env Vars", _check_env_vars),
        ("Data Dirs", _check_data_dirs),
        ("Stores", _check_stores),
        ("OCR", _check_ocr),
        ("LLM (chat)", _check_llm),
        ("Embeddings", _check_embed),
    ]
    results = []
    for name, check_fn in checks:
        ok, detail = await check_fn()
        results.append({"check": name, "ok": ok, "detail": detail})
    return results


def doctor_cmd():
    """Check system health and connectivity."""
    from sage.cli.app import is_json

    results = asyncio.run(_run_checks())

    if is_json():
        print(json.dumps(results, indent=2))
        return

    console = Console()
    table = Table(title="sage doctor", show_lines=True)
    table.add_column("Check", style="bold")
    table.add_column("Status")
    table.add_column("Detail")

    all_ok = True
    for r in results:
        status = "[green]PASS[/green]" if r["ok"] else "[red]FAIL[/red]"
        if not r["ok"]:
            all_ok = False
        table.add_row(r["check"], status, r["detail"])

    console.print(table)
    if all_ok:
        console.print("\n[bold green]All checks passed.[/bold green]")
    else:
        console.print("\n[bold yellow]Some checks failed. See details above.[/bold yellow]")
        raise typer.Exit(code=1)
