import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown

from insta_lens.analyzers.prompts import PromptKind
from insta_lens.config import load_settings
from insta_lens.errors import FetchError, SessionError
from insta_lens.formatters.markdown import format_report
from insta_lens.pipeline import AnalysisPipeline
from insta_lens.utils.logging import setup_logging

load_dotenv()
app = typer.Typer(help="Scrape an Instagram profile, analyze it with an LLM, cache the result.")
console = Console()

NARRATIVE_KINDS = ("report", "forensic", "authenticity", "temporal")


def _pipeline(verbose: bool) -> AnalysisPipeline:
    settings = load_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)
    return AnalysisPipeline.from_settings(settings)


@app.command()
def analyze(
    username: str = typer.Argument(help="Instagram username, with or without @"),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Ignore the cache and re-run the full pipeline"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw outcome as JSON"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save report to file instead of printing"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    pipeline = _pipeline(verbose)

    with console.status(f"[bold green]Analyzing @{username.lstrip('@')}..."):
        outcome = asyncio.run(pipeline.run(username, refresh=refresh))

    if not outcome.ok:
        console.print(f"[bold red]Error ({outcome.error_kind}):[/] {outcome.error}")
        raise typer.Exit(1)

    if outcome.served_from_cache:
        console.print(f"[dim]Served from cache (written {outcome.cached_at:%Y-%m-%d %H:%M} UTC). Use --refresh to re-run.[/]")
    if outcome.analysis.is_error:
        console.print("[bold yellow]Warning:[/] LLM analysis failed; showing error placeholder.")

    text = outcome.model_dump_json(indent=2) if as_json else format_report(outcome)

    if output:
        output.write_text(text)
        console.print(f"[bold green]✓[/] Report saved to [cyan]{output}[/]")
    elif as_json:
        console.print_json(text)
    else:
        console.print(Markdown(text))


@app.command()
def report(
    username: str = typer.Argument(help="Instagram username, with or without @"),
    kind: str = typer.Option("report", "--kind", "-k", help=f"One of: {', '.join(NARRATIVE_KINDS)}"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Generate a single plain-text analysis (never cached)."""
    if kind not in NARRATIVE_KINDS:
        console.print(f"[bold red]Error:[/] --kind must be one of {', '.join(NARRATIVE_KINDS)}, got '{kind}'")
        raise typer.Exit(1)

    pipeline = _pipeline(verbose)
    try:
        with console.status(f"[bold green]Generating {kind} for @{username.lstrip('@')}..."):
            text = asyncio.run(pipeline.narrative(username, PromptKind(kind)))
    except (SessionError, FetchError) as exc:
        console.print(f"[bold red]Error ({exc.kind}):[/] {exc}")
        raise typer.Exit(1)

    console.print(text)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("insta_lens.api.server:app", host=host, port=port)


if __name__ == "__main__":
    app()
