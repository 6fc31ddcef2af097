"""Binary and oversize detection for candidate documents."""

import re
from dataclasses import dataclass
from pathlib import Path

from docport.config.constants import (
    BASE64_RUN_THRESHOLD,
    BINARY_DOCUMENT_EXTENSIONS,
    BINARY_PREFIX_BYTES,
    DEFAULT_MAX_FILE_SIZE,
    MULTIMEDIA_MARKERS,
    NON_PRINTABLE_RATIO,
    NON_PRINTABLE_SAMPLE_CHARS,
)
from docport.utils.fs import format_size

_BASE64_RUN = re.compile(r"[A-Za-z0-9+/=]{%d,}" % (BASE64_RUN_THRESHOLD + 1))
_MULTIMEDIA_DATA_URI = re.compile(
    "(?:%s)[a-z0-9.+-]+;base64," % "|".join(re.escape(m) for m in MULTIMEDIA_MARKERS), re.I
)
_ALLOWED_CONTROL = frozenset("\t\n\r\f")


@dataclass(frozen=True)
class BinaryCheck:
    """Result of a binary check; ``reason`` explains a positive result."""

    is_binary: bool
    reason: str | None = None


_TEXT = BinaryCheck(False)


def _non_printable_ratio(sample: str) -> float:
    if not sample:
        return 0.0
    count = sum(1 for ch in sample if ch < " " and ch not in _ALLOWED_CONTROL)
    return count / len(sample)


def classify_prefix(prefix: bytes) -> BinaryCheck:
    """Classify the leading bytes of a document."""
    if b"\x00" in prefix:
        return BinaryCheck(True, "binary content: NUL bytes")

    text = prefix.decode("utf-8", errors="replace")
    media = _MULTIMEDIA_DATA_URI.search(text)
    if media:
        return BinaryCheck(True, f"embedded multimedia: {media.group(0).lower()}")

    if _BASE64_RUN.search(text):
        return BinaryCheck(True, "embedded base64 data")

    ratio = _non_printable_ratio(text[:NON_PRINTABLE_SAMPLE_CHARS])
    if ratio > NON_PRINTABLE_RATIO:
        return BinaryCheck(True, f"binary content: {ratio:.0%} non-printable")

    return _TEXT


def check_binary(
    path: Path,
    size_bytes: int | None = None,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> BinaryCheck:
    """Decide whether a file should be skipped as binary or oversize.

    Files above ``max_file_size`` are rejected without being read. Otherwise
    only a bounded prefix is inspected. Word containers are never sniffed.

    Raises:
        OSError: If the file cannot be read
    """
    size = path.stat().st_size if size_bytes is None else size_bytes
    if size > max_file_size:
        return BinaryCheck(True, f"file too large: {format_size(size)}")
    if path.suffix.lower() in BINARY_DOCUMENT_EXTENSIONS:
        return _TEXT

    with open(path, "rb") as f:
        prefix = f.read(BINARY_PREFIX_BYTES)
    return classify_prefix(prefix)
