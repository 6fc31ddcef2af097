"""Batch command for converting a documentation project."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from docport.cli.callbacks import validate_output_dir, validate_target_format, validate_toc_plan
from docport.cli.shared import SignalHandler
from docport.config.constants import TARGET_FORMATS
from docport.config.settings import BatchConfig, get_settings
from docport.converters import PassthroughConverter
from docport.core.discovery import FileDiscoverer
from docport.core.orchestrator import BatchOrchestrator
from docport.core.planner import MirrorStrategy
from docport.core.progress import CancellationToken, ProgressPhase
from docport.core.result import BatchResult
from docport.exceptions import DocportError
from docport.services.toc_plan import StaticTocPlanner
from docport.services.variables import FlareVariableExtractor
from docport.utils.logging import (
    get_console,
    get_logger,
    set_log_output,
    setup_logging,
    setup_task_logging,
)

console = get_console()
log = get_logger(__name__)


def batch(
    input_dir: Annotated[
        Path,
        typer.Argument(
            help="Input directory (a Flare project or its Content folder).",
            exists=True,
            file_okay=False,
            dir_okay=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    output: Annotated[
        Path,
        typer.Option(
            "--output",
            "-o",
            help="Output directory for converted files.",
            resolve_path=True,
            callback=validate_output_dir,
        ),
    ],
    target_format: Annotated[
        str | None,
        typer.Option(
            "--format",
            "-f",
            help=f"Target format. Options: {', '.join(TARGET_FORMATS)}",
            callback=validate_target_format,
        ),
    ] = None,
    recursive: Annotated[
        bool | None,
        typer.Option(
            "--recursive/--no-recursive",
            "-r/-R",
            help="Descend into subdirectories.",
        ),
    ] = None,
    include: Annotated[
        list[str] | None,
        typer.Option(
            "--include",
            help="Only convert files matching this pattern (repeatable).",
        ),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option(
            "--exclude",
            help="Skip files matching this pattern (repeatable).",
        ),
    ] = None,
    preserve_structure: Annotated[
        bool | None,
        typer.Option(
            "--preserve-structure/--flatten",
            help="Mirror the input directory layout in the output.",
        ),
    ] = None,
    copy_images: Annotated[
        bool | None,
        typer.Option(
            "--copy-images/--no-copy-images",
            help="Copy image assets into the output.",
        ),
    ] = None,
    rename_from_heading: Annotated[
        bool | None,
        typer.Option(
            "--rename-from-heading/--keep-names",
            help="Name output files after the document's first heading.",
        ),
    ] = None,
    toc_plan: Annotated[
        Path | None,
        typer.Option(
            "--toc-plan",
            help="YAML or JSON TOC plan mapping inputs to output paths.",
            callback=validate_toc_plan,
        ),
    ] = None,
    chunk_size: Annotated[
        int | None,
        typer.Option(
            "--chunk-size",
            min=1,
            help="Number of files per chunk.",
        ),
    ] = None,
    chunk_delay: Annotated[
        float | None,
        typer.Option(
            "--chunk-delay",
            min=0,
            help="Pause between chunks, in seconds.",
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(
            "--timeout",
            min=0.001,
            help="Per-file conversion timeout, in seconds.",
        ),
    ] = None,
    group_size: Annotated[
        int | None,
        typer.Option(
            "--group-size",
            min=1,
            help="Number of files converted concurrently.",
        ),
    ] = None,
    extract_variables: Annotated[
        bool | None,
        typer.Option(
            "--extract-variables/--no-extract-variables",
            help="Write project and document variables to an include file.",
        ),
    ] = None,
    variable_format: Annotated[
        str | None,
        typer.Option(
            "--variable-format",
            help="Variables file format: adoc or writerside.",
        ),
    ] = None,
    variables_output: Annotated[
        str | None,
        typer.Option(
            "--variables-output",
            help="Variables file path, relative to the output directory.",
        ),
    ] = None,
    generate_stylesheet: Annotated[
        bool | None,
        typer.Option(
            "--stylesheet/--no-stylesheet",
            help="Write a shared stylesheet (zendesk format only).",
        ),
    ] = None,
    master_doc: Annotated[
        bool | None,
        typer.Option(
            "--master-doc/--no-master-doc",
            help="Write a master document listing converted files.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Show batch plan without executing.",
        ),
    ] = False,
) -> None:
    """Batch convert a documentation project.

    Examples:
        docport batch ./MyProject -o ./out
        docport batch ./MyProject/Content -o ./out -f zendesk --rename-from-heading
        docport batch ./MyProject -o ./out --toc-plan plan.yaml --master-doc
    """
    settings = get_settings()

    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="batch",
        verbose=verbose,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))

    if variable_format is not None and variable_format not in ("adoc", "writerside"):
        console.print(
            f"[red]Error:[/red] Invalid variable format '{variable_format}'. "
            "Options: adoc, writerside"
        )
        raise typer.Exit(1)

    try:
        config = BatchConfig.from_settings(
            settings,
            target_format=target_format,
            recursive=recursive,
            include_patterns=tuple(include) if include else None,
            exclude_patterns=tuple(exclude) if exclude else None,
            preserve_structure=preserve_structure,
            copy_images=copy_images,
            rename_files_from_heading=rename_from_heading,
            use_toc_plan=True if toc_plan else None,
            chunk_size=chunk_size,
            chunk_delay=chunk_delay,
            per_file_timeout=timeout,
            group_size=group_size,
            extract_variables=extract_variables,
            variable_format=variable_format,
            variables_output_path=variables_output,
            generate_stylesheet=generate_stylesheet,
            generate_master_doc=master_doc,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        raise typer.Exit(1) from e

    converter = PassthroughConverter()
    if not converter.produces(config.target_format):
        if target_format is not None:
            console.print(
                f"[red]Error:[/red] The {converter.name} converter cannot produce "
                f"'{target_format}'. Options: {', '.join(converter.target_formats)}"
            )
            raise typer.Exit(1)
        console.print(
            f"[yellow]Note:[/yellow] The {converter.name} converter writes HTML, "
            f"using format '{converter.target_formats[0]}'"
        )
        config = config.model_copy(update={"target_format": converter.target_formats[0]})

    log.info("Task Configuration", task_id=task_id, config=config.model_dump(mode="json"))

    if dry_run:
        _show_dry_run(input_dir, output, config)
        return

    token = CancellationToken()
    orchestrator = BatchOrchestrator(
        converter=converter,
        toc_planner=StaticTocPlanner(toc_plan) if toc_plan else None,
        variable_extractor=FlareVariableExtractor() if config.extract_variables else None,
        token=token,
    )

    try:
        with SignalHandler(console, token, {"task_id": task_id, "input_dir": str(input_dir)}):
            result = asyncio.run(
                _execute_batch(orchestrator, input_dir, output, config, log_path, verbose)
            )
    except DocportError as e:
        console.print(f"[red]Error:[/red] {e}")
        log.error("Batch conversion failed", error=str(e))
        raise typer.Exit(1) from e

    _display_summary(result, verbose)

    if result.cancelled:
        raise typer.Exit(130)
    if not result.success:
        raise typer.Exit(1)


async def _execute_batch(
    orchestrator: BatchOrchestrator,
    input_dir: Path,
    output_dir: Path,
    config: BatchConfig,
    log_path: Path,
    verbose: bool,
) -> BatchResult:
    """Run the orchestrator while a progress bar follows its events.

    Console logging is silenced while the bar is live; the task log file
    keeps receiving everything.
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("({task.completed}/{task.total})"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    ) as progress:
        original_stderr = sys.stderr

        with open(os.devnull, "w") as devnull:
            set_log_output(devnull)
            setup_logging(
                level="DEBUG",
                log_file=str(log_path),
                console=progress.console,
                console_level="WARNING",
                file_level="DEBUG",
            )

            progress_task_id = progress.add_task("[cyan]Discovering files...", total=None)
            subscription = orchestrator.subscribe()

            async def follow() -> None:
                async for event in subscription:
                    if event.phase is ProgressPhase.CONVERTING:
                        description = f"[cyan]{event.current_file}"
                        if event.heartbeat:
                            description += " [dim](still working)[/dim]"
                        progress.update(
                            progress_task_id,
                            description=description,
                            total=event.total,
                            completed=event.index - 1,
                        )
                    elif event.phase is ProgressPhase.COMPLETED:
                        progress.update(
                            progress_task_id,
                            description="[green]Done",
                            total=event.total,
                            completed=event.total,
                        )

            follower = asyncio.create_task(follow())
            try:
                result = await orchestrator.run_batch(input_dir, output_dir, config)
            finally:
                await follower

            if verbose:
                for skipped in result.skipped_list:
                    progress.console.print(f"  [yellow]-[/yellow] {skipped.file} [dim]({skipped.reason})[/dim]")
            for error in result.errors:
                progress.console.print(f"  [red]x[/red] {error.file}")
                progress.console.print(f"    [dim]{_simplify_error(error.error)}[/dim]")

        set_log_output(original_stderr)
        setup_logging(
            level="DEBUG",
            log_file=str(log_path),
            console_level="DEBUG" if verbose else "WARNING",
            file_level="DEBUG",
        )

    return result


def _display_summary(result: BatchResult, verbose: bool) -> None:
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Summary", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")

    table.add_row("Total Files", str(result.total_files))
    table.add_row("Converted", f"[green]{result.converted}[/green]")
    table.add_row("Failed", f"[red]{result.failed}[/red]")
    table.add_row("Skipped", f"[yellow]{result.skipped}[/yellow]")

    if result.converted > 0 and result.total_files > 0:
        success_rate = (result.converted / result.total_files) * 100
        table.add_row("Success Rate", f"{success_rate:.1f}%")
    if result.toc_structure is not None:
        table.add_row("TOC Plan", f"{len(result.toc_structure.file_mapping)} mapped files")
    if result.filename_mapping is not None:
        table.add_row("Renamed", str(len(result.filename_mapping)))
    if result.quality_summary is not None:
        summary = result.quality_summary
        table.add_row("Mean Quality", f"{summary.mean_score:.1f}")
        table.add_row(f"Below {summary.threshold}", str(len(summary.low_scoring)))
    if result.master_document is not None:
        table.add_row("Master Document", str(result.master_document))
    if result.cancelled:
        table.add_row("Status", "[yellow]Cancelled[/yellow]")

    console.print(table)

    if result.discovery_errors:
        console.print()
        console.print("[bold yellow]Unreadable Directories:[/bold yellow]")
        for error in result.discovery_errors[:10]:
            console.print(f"  [dim]-[/dim] {error}")

    if result.supplementary_errors:
        console.print()
        console.print("[bold yellow]Supplementary Outputs Not Written:[/bold yellow]")
        for error in result.supplementary_errors:
            console.print(f"  [dim]-[/dim] {error.step}: {_simplify_error(error.error)}")

    if result.errors:
        console.print()
        console.print("[bold red]Failed Files:[/bold red]")
        for error in result.errors[:10]:
            console.print(f"  [dim]-[/dim] {error.file}")
            console.print(f"    [dim]{_simplify_error(error.error)}[/dim]")
        if len(result.errors) > 10:
            console.print(f"  [dim]... and {len(result.errors) - 10} more[/dim]")

    if verbose and result.skipped_list:
        reasons: dict[str, int] = {}
        for skipped in result.skipped_list:
            reasons[skipped.reason] = reasons.get(skipped.reason, 0) + 1
        console.print()
        console.print("[bold]Skip Reasons:[/bold]")
        for reason, count in sorted(reasons.items(), key=lambda item: -item[1]):
            console.print(f"  {reason}: {count}")

    console.print()


def _simplify_error(error: str) -> str:
    """Simplify error message for display."""
    if len(error) > 100:
        return error[:97] + "..."
    return error


def _show_dry_run(input_dir: Path, output_dir: Path, config: BatchConfig) -> None:
    """Display the batch plan without executing."""
    console.print("\n[bold blue]Batch Plan (Dry Run)[/bold blue]\n")
    console.print(f"  [bold]Input Directory:[/bold] {input_dir}")
    console.print(f"  [bold]Output Directory:[/bold] {output_dir}")
    console.print(f"  [bold]Format:[/bold] {config.target_format}")
    console.print(f"  [bold]Recursive:[/bold] {config.recursive}")
    if config.include_patterns:
        console.print(f"  [bold]Include Patterns:[/bold] {', '.join(config.include_patterns)}")
    if config.exclude_patterns:
        console.print(f"  [bold]Exclude Patterns:[/bold] {', '.join(config.exclude_patterns)}")
    console.print(
        f"  [bold]Chunks:[/bold] {config.chunk_size} files, "
        f"{config.chunk_delay}s apart, groups of {config.group_size}"
    )

    discoverer = FileDiscoverer(config, skip_dirs=[output_dir])
    candidates = discoverer.discover(input_dir)
    strategy = MirrorStrategy(input_dir, output_dir, config)

    console.print()
    console.print(f"[bold]Files Found:[/bold] {len(candidates)}")

    if candidates:
        by_ext: dict[str, int] = {}
        for candidate in candidates:
            by_ext[candidate.extension] = by_ext.get(candidate.extension, 0) + 1

        console.print()
        console.print("[bold]By Type:[/bold]")
        for ext, count in sorted(by_ext.items()):
            console.print(f"  {ext}: {count}")

        console.print()
        console.print("[bold]Files:[/bold]")
        for candidate in candidates[:10]:
            target = strategy.default_output(candidate)
            console.print(
                f"  - {candidate.path.relative_to(input_dir)} -> {target.relative_to(output_dir)}"
            )
        if len(candidates) > 10:
            console.print(f"  ... and {len(candidates) - 10} more")

    console.print()
