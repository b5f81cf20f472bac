"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from epub_rn.core.converter import convert, convert_and_save
from epub_rn.errors import ConversionError
from epub_rn.models import CompleteEpubInfo, ConversionConfig, node_text

app = typer.Typer(
    name="epub-rn",
    help="Convert EPUB books into render-ready JSON document trees.",
    add_completion=False,
)

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _summary_panel(info: CompleteEpubInfo, output_path: Optional[Path] = None) -> Panel:
    metadata = info.metadata
    lines = [
        f"[bold]{metadata.title or 'Untitled'}[/]",
        "",
        f"[dim]Author:[/] {metadata.author or 'Unknown'}",
        f"[dim]Language:[/] {metadata.language or 'Unknown'}",
        f"[dim]Publisher:[/] {metadata.publisher or 'Unknown'}",
        f"[dim]Chapters:[/] {info.structure.spine_count}",
        f"[dim]TOC entries:[/] {info.structure.toc_count}",
        f"[dim]Resources:[/] {info.structure.resource_count}",
        f"[dim]Images:[/] {len(info.images)}",
        f"[dim]Style keys:[/] {len(info.styles)}",
    ]
    if output_path is not None:
        lines.append(f"[dim]Output:[/] {output_path}")

    if info.warnings:
        lines.append("")
        for warning in info.warnings:
            lines.append(f"[yellow]! {warning}[/]")

    return Panel("\n".join(lines), title="Book Information", border_style="green")


@app.command("convert")
def convert_command(
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    output_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--output-dir",
            "-o",
            help="Output directory (default: {book_name}_rn/)",
        ),
    ] = None,
    workers: Annotated[
        int,
        typer.Option(
            "--workers",
            "-w",
            help="Threads used for extraction and chapter conversion",
            min=1,
        ),
    ] = 1,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress the summary output",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log progress while converting",
        ),
    ] = False,
) -> None:
    """Convert an EPUB file and write book.json."""
    _setup_logging(verbose)

    if output_dir is None:
        output_dir = book_path.parent / f"{book_path.stem}_rn"
    config = ConversionConfig(max_workers=workers)

    try:
        info = convert_and_save(book_path, output_dir, config)
    except ConversionError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    if not quiet:
        console.print()
        console.print(_summary_panel(info, output_dir / config.output_filename))
        console.print()


@app.command()
def info(
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
) -> None:
    """Display book metadata, table of contents and chapters."""
    _setup_logging(False)

    try:
        book = convert(book_path.read_bytes())
    except (ConversionError, OSError) as e:
        console.print(f"[red]Error reading file: {e}[/]")
        raise typer.Exit(1)

    console.print()
    console.print(_summary_panel(book))

    if book.toc:
        console.print()
        toc_table = Table(
            title="Table of Contents", show_header=True, header_style="bold cyan"
        )
        toc_table.add_column("#", style="dim", width=4)
        toc_table.add_column("Label", style="white")
        toc_table.add_column("Target", style="dim")
        for index, item in enumerate(book.toc, start=1):
            toc_table.add_row(str(index), item.label, item.content_path)
        console.print(toc_table)

    console.print()
    table = Table(title="Chapters", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Id", style="white")
    table.add_column("Title", style="white")
    table.add_column("Chars", justify="right", style="green")
    for chapter in book.chapters:
        title = chapter.title or "[dim]-[/]"
        if not chapter.linear:
            title = f"{title} [dim](non-linear)[/]"
        table.add_row(
            str(chapter.spine_index + 1),
            chapter.idref,
            title,
            f"{len(node_text(chapter.content)):,}",
        )
    console.print(table)
    console.print()


if __name__ == "__main__":
    app()
