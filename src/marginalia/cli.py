# src/marginalia/cli.py
"""
marginalia Command Line Interface (CLI).

Terminal front-end built on `typer` and `rich`. It reads a page exported by
the content backend (a JSON list of blocks), runs the page pass and writes
the rewritten blocks together with the extracted footnotes, citations and
bibliography.

Extraction options come from the environment / `.env` files (see
:mod:`marginalia.core.settings`); a few can be overridden per run.

Usage
-----
    # Extract footnotes and citations from a page
    $ marginalia extract page.json -o page.out.json --bib https://gist.github.com/u/abc123

    # Warm the bibliography cache
    $ marginalia bib fetch https://github.com/o/r/blob/main/refs.bib

    # Show how a share link is resolved
    $ marginalia bib source https://www.dropbox.com/s/x/refs.bib?dl=0
"""

from __future__ import annotations

import json
import time
import traceback
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import TypeAdapter
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from marginalia.citations.cache import BibliographyCache
from marginalia.citations.fetch import BibliographyFetcher
from marginalia.citations.formatting import in_text_label
from marginalia.citations.sources import get_bib_source_info, url_hash
from marginalia.core.contracts.block import Block
from marginalia.core.contracts.citation import ParsedCitationEntry
from marginalia.core.contracts.config import BibliographyStyle
from marginalia.core.richtext import join_plain_text
from marginalia.core.settings import Settings, load_settings
from marginalia.pipelines.page import PageExtraction, process_page
from marginalia.providers.comments import NotionCommentsProvider
from marginalia.providers.files import LocalFileDownloader

# Ensure env vars (like NOTION_TOKEN) are loaded before any logic runs
load_dotenv()

app = typer.Typer(
    help="marginalia: footnote and citation extraction for block-structured pages.",
    rich_markup_mode="markdown",
)
bib_app = typer.Typer(help="Bibliography cache commands.")
app.add_typer(bib_app, name="bib")
console = Console()

_BLOCKS = TypeAdapter(list[Block])


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _load_bibliography(settings: Settings, urls: list[str]) -> dict[str, ParsedCitationEntry]:
    """Fetch (or reuse) every configured bibliography and merge them."""
    if not urls:
        return {}
    fetcher = BibliographyFetcher(cache=BibliographyCache(settings.bib_cache_dir))
    return fetcher.load_all(urls, max_workers=settings.max_workers)


def _render_summary(extraction: PageExtraction, style: BibliographyStyle) -> None:
    """Print footnote and citation tables."""
    if extraction.footnotes:
        table = Table(title="Footnotes", show_lines=False)
        table.add_column("Marker", style="cyan")
        table.add_column("Source")
        table.add_column("Content")
        for fn in extraction.footnotes:
            if fn.content.type == "blocks":
                preview = f"{len(fn.content.blocks)} block(s)"
            else:
                preview = join_plain_text(fn.content.rich_texts)
            table.add_row(escape(fn.full_marker), fn.source_location, escape(preview[:80]))
        console.print(table)

    if extraction.bibliography:
        table = Table(title="Bibliography")
        table.add_column("Cited as", justify="right")
        table.add_column("Key", style="cyan")
        table.add_column("Authors")
        table.add_column("Year")
        for citation in extraction.bibliography:
            table.add_row(
                escape(in_text_label(citation, style)),
                escape(citation.key),
                escape(citation.authors),
                citation.year,
            )
        console.print(table)

    if not extraction.footnotes and not extraction.citations:
        console.print("[dim]No footnotes or citations found.[/dim]")


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def extract(
    page: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            help="JSON file holding the page's list of blocks.",
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Where to write the extraction result (JSON)."),
    ] = None,
    bib: Annotated[
        list[str] | None,
        typer.Option("--bib", "-b", help="Bibliography share URL (repeatable; overrides BIB_URLS)."),
    ] = None,
    attachments_dir: Annotated[
        Path | None,
        typer.Option("--attachments-dir", help="Download comment attachments here."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show full error tracebacks for debugging."),
    ] = False,
) -> None:
    """
    Extract footnotes and citations from a page export.
    """
    settings = load_settings()
    footnotes_config = settings.footnotes_config()
    citations_config = settings.citations_config()

    console.print(
        Panel.fit(
            f"[bold cyan]marginalia[/bold cyan]\nProcessing: [u]{escape(page.name)}[/u]\n"
            f"Footnotes: {footnotes_config.source or 'off'} | "
            f"Citations: {escape(citations_config.in_text_format)} "
            f"({citations_config.bibliography_style})",
            border_style="cyan",
        )
    )

    start_time = time.time()
    try:
        blocks = _BLOCKS.validate_json(page.read_text(encoding="utf-8"))

        comments = None
        if footnotes_config.source == "block-comments" and settings.notion_token:
            comments = NotionCommentsProvider(
                token=settings.notion_token, timeout_seconds=settings.comments_timeout_seconds
            )
        downloader = (
            LocalFileDownloader(attachments_dir, optimize_images=settings.optimize_images)
            if attachments_dir is not None
            else None
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("[cyan]Loading bibliography...", total=None)
            entries = _load_bibliography(settings, bib or settings.bib_urls)

            progress.update(task, description="[yellow]Extracting footnotes and citations...")
            extraction = process_page(
                blocks,
                footnotes=footnotes_config,
                citations=citations_config,
                bib_entries=entries,
                comments=comments,
                downloader=downloader,
                max_workers=settings.max_workers,
            )
    except Exception as e:
        console.print(f"\n[bold red]❌ Extraction Error:[/bold red] {escape(str(e))}")
        if verbose:
            traceback.print_exc()
        raise typer.Exit(code=1) from e

    duration = time.time() - start_time
    console.print(
        f"\n[bold green]✅ Complete![/bold green] {len(extraction.footnotes)} footnote(s), "
        f"{len(extraction.citations)} citation(s) (took {duration:.1f}s)\n"
    )
    _render_summary(extraction, citations_config.bibliography_style)

    if output is not None:
        payload = {
            "blocks": _BLOCKS.dump_python(blocks, mode="json", exclude_none=True),
            **extraction.model_dump(mode="json", exclude_none=True),
        }
        output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(Panel(f"Saved to: {output}", title="Artifact", border_style="green"))


@bib_app.command("fetch")  # type: ignore[misc]
def bib_fetch(
    urls: Annotated[list[str], typer.Argument(help="Bibliography share URLs, in merge order.")],
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Cache directory (defaults to BIB_CACHE_DIR)."),
    ] = None,
) -> None:
    """
    Fetch, parse and cache bibliography files.
    """
    settings = load_settings()
    cache = BibliographyCache(cache_dir or settings.bib_cache_dir)
    fetcher = BibliographyFetcher(cache=cache)

    try:
        entries = fetcher.load_all(urls, max_workers=settings.max_workers)
    except Exception as e:
        console.print(f"\n[bold red]❌ Fetch Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    table = Table(title="Sources")
    table.add_column("URL")
    table.add_column("Cache key", style="dim")
    table.add_column("Entries", justify="right")
    for url in urls:
        meta = cache.load_meta(url_hash(url))
        table.add_row(escape(url), url_hash(url), str(meta.entry_count) if meta else "failed")
    console.print(table)
    console.print(f"[bold green]{len(entries)} unique entries[/bold green] in {cache.cache_dir}")


@bib_app.command("source")  # type: ignore[misc]
def bib_source(
    url: Annotated[str, typer.Argument(help="Bibliography share URL.")],
) -> None:
    """
    Show how a share URL is downloaded and checked for updates.
    """
    info = get_bib_source_info(url)
    table = Table(show_header=False)
    table.add_row("Source", info.source)
    table.add_row("Download URL", escape(info.download_url))
    table.add_row("Update probe", info.updated_url or "-")
    table.add_row("Probe", escape(info.updated_instructions or "-"))
    table.add_row("Cache key", url_hash(url))
    console.print(table)


if __name__ == "__main__":
    app()
