"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from docport import __version__
from docport.cli.commands.batch import batch
from docport.cli.commands.stats import stats

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="docport",
    help="Batch conversion of documentation projects to AsciiDoc, Markdown and Zendesk.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

app.command(name="batch", help="Batch convert a documentation project.")(batch)
app.command(name="stats", help="Show file counts for an input directory.")(stats)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]docport[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """docport - batch conversion of documentation projects.

    Walks an authoring-tool export, converts each document, copies images and
    repairs cross-references between renamed files.
    """


if __name__ == "__main__":
    app()
