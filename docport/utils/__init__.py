"""Utility module for docport."""

from docport.utils.fs import (
    atomic_write,
    copy_file_safe,
    ensure_directory,
    ensure_output_root,
    format_size,
    get_relative_path,
    is_within,
    read_text,
    to_posix,
)
from docport.utils.similarity import levenshtein_distance, similarity

__all__ = [
    # File system
    "atomic_write",
    "copy_file_safe",
    "ensure_directory",
    "ensure_output_root",
    "format_size",
    "get_relative_path",
    "is_within",
    "read_text",
    "to_posix",
    # Similarity
    "levenshtein_distance",
    "similarity",
]
