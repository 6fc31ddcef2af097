"""CLI callback functions."""

from pathlib import Path

import typer

from docport.config.constants import TARGET_FORMATS


def validate_output_dir(value: Path | None) -> Path | None:
    """Reject an output path that exists as a file."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_target_format(value: str | None) -> str | None:
    """Validate the target format option."""
    if value is not None and value not in TARGET_FORMATS:
        raise typer.BadParameter(
            f"Invalid format '{value}'. Options: {', '.join(TARGET_FORMATS)}"
        )

    return value


def validate_toc_plan(value: Path | None) -> Path | None:
    """Validate that a TOC plan file exists and is YAML or JSON."""
    if value is None:
        return None

    if not value.is_file():
        raise typer.BadParameter(f"TOC plan not found: {value}")

    if value.suffix.lower() not in {".yaml", ".yml", ".json"}:
        raise typer.BadParameter(f"TOC plan must be .yaml, .yml or .json: {value}")

    return value
