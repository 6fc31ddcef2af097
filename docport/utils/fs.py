"""File system utilities for docport.

Provides safe file operations and path handling shared by the batch
components.
"""

import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from docport.exceptions import OutputRootError
from docport.utils.logging import get_logger

log = get_logger(__name__)


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_output_root(path: Path) -> Path:
    """Create the batch output root.

    An existing directory is fine; anything else that prevents creation is
    fatal for the batch.

    Raises:
        OutputRootError: If the directory cannot be created
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputRootError(path, e) from e
    return path


def read_text(path: Path) -> str:
    """Read a document as text, tolerating legacy encodings.

    Tries UTF-8 first and falls back to cp1252 with replacement, which is what
    older authoring tools export.
    """
    data = path.read_bytes()
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


def get_relative_path(file_path: Path, base_path: Path) -> Path:
    """Get relative path from base, handling edge cases.

    Args:
        file_path: File path
        base_path: Base path

    Returns:
        Relative path, or ``file_path`` unchanged when it is not under base
    """
    try:
        return file_path.relative_to(base_path)
    except ValueError:
        return file_path


def to_posix(path: Path | str) -> str:
    """Render a relative path with forward slashes."""
    return Path(path).as_posix()


def is_within(path: Path, parent: Path) -> bool:
    """Check whether ``path`` is ``parent`` or lies underneath it."""
    try:
        path.resolve().relative_to(parent.resolve())
    except ValueError:
        return False
    return True


def copy_file_safe(src: Path, dst: Path, overwrite: bool = False) -> Path:
    """Safely copy a file.

    Args:
        src: Source file path
        dst: Destination file path
        overwrite: Allow overwriting existing files

    Returns:
        Destination path

    Raises:
        FileExistsError: If destination exists and overwrite is False
    """
    if dst.exists() and not overwrite:
        raise FileExistsError(f"Destination already exists: {dst}")

    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)
    return dst


@contextmanager
def atomic_write(
    file_path: Path,
    mode: str = "w",
    encoding: str | None = "utf-8",
) -> Iterator[IO[Any]]:
    """Context manager for atomic file writes.

    Writes to a temp file first, then atomically moves to target.

    Args:
        file_path: Target file path
        mode: File mode ('w' or 'wb')
        encoding: File encoding (ignored for binary mode)

    Yields:
        File handle
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_name = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.name}.",
    )
    temp_path = Path(temp_name)

    try:
        os.close(temp_fd)

        if "b" in mode:
            with open(temp_path, mode) as f:
                yield f
        else:
            with open(temp_path, mode, encoding=encoding) as f:
                yield f

        temp_path.replace(file_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def format_size(size: int | float) -> str:
    """Format byte size as human-readable string.

    Args:
        size: Size in bytes

    Returns:
        Human-readable size string
    """
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"
