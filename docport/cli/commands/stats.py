"""Stats command for summarising an input tree."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from docport.config.settings import BatchConfig
from docport.core.discovery import FileDiscoverer
from docport.utils.fs import format_size
from docport.utils.logging import get_console

console = get_console()


def stats(
    input_dir: Annotated[
        Path,
        typer.Argument(
            help="Directory to summarise.",
            exists=True,
            file_okay=False,
            dir_okay=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    recursive: Annotated[
        bool | None,
        typer.Option(
            "--recursive/--no-recursive",
            "-r/-R",
            help="Descend into subdirectories.",
        ),
    ] = None,
) -> None:
    """Show file counts for a directory, as the batch command would see it.

    Examples:
        docport stats ./MyProject
    """
    config = BatchConfig.from_settings(recursive=recursive)
    discoverer = FileDiscoverer(config)
    summary = discoverer.directory_stats(input_dir)

    table = Table(title=f"Directory Stats: {input_dir.name}", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Directories", str(summary.directories))
    table.add_row("Total Files", str(summary.total_files))
    table.add_row("Convertible Files", f"[green]{summary.supported_files}[/green]")
    table.add_row("Total Size", format_size(summary.total_size))
    if discoverer.errors:
        table.add_row("Unreadable Directories", f"[yellow]{len(discoverer.errors)}[/yellow]")
    console.print(table)

    if summary.by_extension:
        ext_table = Table(title="By Extension")
        ext_table.add_column("Extension", style="cyan")
        ext_table.add_column("Files", justify="right")
        for ext, count in summary.by_extension.most_common():
            ext_table.add_row(ext, str(count))
        console.print(ext_table)
