# src/pagesmith/cli.py
"""
PageSmith Command Line Interface (CLI).

Terminal front-end built with `typer` and `rich`.

Commands
--------
- **generate**: call the provider for one page and run the repair pipeline.
- **repair**: run the offline pipeline over a saved model reply (file or stdin).
- **blocks**: list the block types of the active manifest.

Every command accepts ``--manifest`` (before the command name) to swap in an
operator-supplied manifest for this invocation.

Usage
-----
    $ pagesmith generate "Elpriser i dag" -k elpris -k spotpris -b faqGroup
    $ pagesmith repair reply.txt --policy fallback --ndjson page.ndjson
    $ pagesmith --manifest custom.json blocks
"""

from __future__ import annotations

import json
import random
import sys
import time
import traceback
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pagesmith.core.contracts.generation import (
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
    RelatedPage,
)
from pagesmith.export.ndjson import PageMetadata, build_ndjson
from pagesmith.llm.client import LLMClient, validate_api_key
from pagesmith.manifest.loader import ManifestError, get_manifest_store
from pagesmith.pipelines.generation import FailurePolicy, GenerationPipeline, generate_page

# Ensure env vars (like OPENROUTER_API_KEY) are loaded before any logic runs
load_dotenv()

app = typer.Typer(
    help="PageSmith: turn model replies into schema-compliant CMS content blocks.",
    rich_markup_mode="markdown",
)
console = Console()


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _render_success(result: GenerationSuccess) -> None:
    """Show the produced blocks and a repair summary."""
    table = Table(title="Content blocks", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Key", style="dim")
    table.add_column("Fields")
    for index, block in enumerate(result.blocks):
        table.add_row(str(index), block.type, block.key, ", ".join(block.fields))
    console.print(table)

    fixes = sum(1 for e in result.repairs if e.kind == "fixed")
    violations = len(result.repairs) - fixes
    console.print(f"[dim]Repairs: {fixes} fixed, {violations} violation(s)[/dim]")
    if result.fallback_used:
        console.print("[bold yellow]Fallback block used: the model output was unusable.[/]")
    if result.usage.total_tokens:
        console.print(
            f"[dim]Tokens: {result.usage.prompt_tokens} prompt + "
            f"{result.usage.completion_tokens} completion = {result.usage.total_tokens}[/dim]"
        )


def _render_failure(result: GenerationFailure) -> None:
    console.print(f"\n[bold red]❌ {result.reason.split(':')[0]}[/bold red]")
    for warning in result.warnings or (result.reason,):
        console.print(f" • {warning}")


def _export(result: GenerationSuccess, path: Path, metadata: PageMetadata) -> None:
    text, document = build_ndjson(result.blocks, metadata)
    path.write_text(text + "\n", encoding="utf-8")
    console.print(
        Panel(
            f"Saved {len(document['contentBlocks'])} block(s) to: {path}",
            title="NDJSON",
            border_style="green",
        )
    )


def _finish(
    result: GenerationResult,
    *,
    ndjson: Path | None,
    metadata: PageMetadata,
    as_json: bool,
) -> None:
    """Render ``result``, export it if asked, and exit non-zero on failure."""
    if not isinstance(result, GenerationSuccess):
        if isinstance(result, GenerationFailure):
            _render_failure(result)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(result.to_payload(), ensure_ascii=False, indent=2))
    else:
        _render_success(result)
    if ndjson is not None:
        _export(result, ndjson, metadata)


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.callback()  # type: ignore[misc]
def main(
    manifest: Annotated[
        Path | None,
        typer.Option(
            "--manifest",
            exists=True,
            dir_okay=False,
            readable=True,
            help="Use this manifest JSON instead of the configured one.",
        ),
    ] = None,
) -> None:
    """PageSmith: turn model replies into schema-compliant CMS content blocks."""
    if manifest is None:
        return
    try:
        get_manifest_store().reload(manifest)
    except ManifestError as e:
        console.print(f"[bold red]❌ Manifest Error:[/bold red] {e}")
        raise typer.Exit(code=2) from e


@app.command()  # type: ignore[misc]
def generate(
    topic: Annotated[str, typer.Argument(help="Page topic, e.g. 'Elpriser i dag'.")],
    keyword: Annotated[
        list[str] | None,
        typer.Option("--keyword", "-k", help="SEO keyword (repeatable)."),
    ] = None,
    goal: Annotated[
        str, typer.Option("--goal", "-g", help="Content goal: educate, compare or convert.")
    ] = "educate",
    tone: Annotated[str, typer.Option("--tone", help="Writing tone.")] = "friendly",
    length: Annotated[
        str, typer.Option("--length", "-l", help="Length bucket: short, medium or long.")
    ] = "long",
    block: Annotated[
        list[str] | None,
        typer.Option("--block", "-b", help="Optional block type to include (repeatable)."),
    ] = None,
    related: Annotated[
        list[str] | None,
        typer.Option("--related", help="Related page as 'Title=URL' (repeatable)."),
    ] = None,
    model: Annotated[
        str | None, typer.Option("--model", "-m", help="Model alias or OpenRouter id.")
    ] = None,
    policy: Annotated[
        FailurePolicy | None,
        typer.Option("--policy", help="What to do with non-compliant output."),
    ] = None,
    ndjson: Annotated[
        Path | None, typer.Option("--ndjson", "-o", help="Write a Sanity NDJSON file.")
    ] = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the contentBlocks document as JSON.")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show full error tracebacks.")
    ] = False,
) -> None:
    """Generate one page with the configured model and repair it."""
    client = LLMClient.from_env()
    if not validate_api_key(client.api_key):
        console.print(
            "[yellow]Warning: OPENROUTER_API_KEY is missing or does not look like an "
            "OpenRouter key (sk-or-v1-...).[/yellow]"
        )

    pages = []
    for item in related or []:
        title, _, url = item.partition("=")
        pages.append(RelatedPage(title=title.strip(), url=url.strip()))

    try:
        request = GenerationRequest(
            topic=topic,
            keywords=tuple(keyword or ()),
            content_goal=goal,  # type: ignore[arg-type]
            tone=tone,
            content_length=length,  # type: ignore[arg-type]
            optional_blocks=tuple(block or ()),
            related_pages=tuple(pages),
        )
    except ValueError as e:
        console.print(f"[bold red]❌ Invalid request:[/bold red] {e}")
        raise typer.Exit(code=2) from e

    console.print(
        Panel.fit(
            f"[bold cyan]PageSmith[/bold cyan]\nTopic: [u]{topic}[/u]",
            border_style="cyan",
        )
    )

    start_time = time.time()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"[yellow]Generating with {model or client.default_model_alias}...")
            result = generate_page(request, client, model=model, policy=policy)
    except Exception as e:
        console.print(f"\n[bold red]❌ Pipeline Error:[/bold red] {e}")
        if verbose:
            traceback.print_exc()
        raise typer.Exit(code=1) from e

    console.print(f"[dim]Finished in {time.time() - start_time:.1f}s[/dim]")
    _finish(
        result,
        ndjson=ndjson,
        metadata=PageMetadata(
            title=topic, topic=topic, keywords=request.keywords, content_goal=goal
        ),
        as_json=as_json,
    )


@app.command()  # type: ignore[misc]
def repair(
    source: Annotated[
        str, typer.Argument(help="File holding a raw model reply, or '-' for stdin.")
    ] = "-",
    policy: Annotated[
        FailurePolicy,
        typer.Option("--policy", help="What to do with non-compliant output."),
    ] = FailurePolicy.FAIL,
    seed: Annotated[
        int | None, typer.Option("--seed", help="Seed for reproducible repairs.")
    ] = None,
    title: Annotated[
        str, typer.Option("--title", help="Page title used for the NDJSON export.")
    ] = "Generated page",
    ndjson: Annotated[
        Path | None, typer.Option("--ndjson", "-o", help="Write a Sanity NDJSON file.")
    ] = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the contentBlocks document as JSON.")
    ] = False,
) -> None:
    """Run extraction, repair and validation over a saved model reply (no network)."""
    if source == "-":
        raw = sys.stdin.read()
    else:
        path = Path(source)
        if not path.is_file():
            console.print(f"[bold red]❌ No such file:[/bold red] {source}")
            raise typer.Exit(code=2)
        raw = path.read_text(encoding="utf-8")

    pipeline = GenerationPipeline(
        get_manifest_store().current(),
        policy=policy,
        rng=random.Random(seed) if seed is not None else None,
    )
    result = pipeline.run(raw)
    _finish(
        result,
        ndjson=ndjson,
        metadata=PageMetadata(title=title, topic=title),
        as_json=as_json,
    )


@app.command()  # type: ignore[misc]
def blocks() -> None:
    """List the block types of the active manifest."""
    manifest = get_manifest_store().current()
    table = Table(title=f"Manifest {manifest.version}")
    table.add_column("Type", style="cyan")
    table.add_column("Status")
    table.add_column("Required fields")
    for spec in manifest.block_types:
        table.add_row(
            spec.type,
            "[bold]mandatory[/bold]" if spec.mandatory else "optional",
            ", ".join(sorted(spec.required_fields)),
        )
    console.print(table)


if __name__ == "__main__":
    app()
