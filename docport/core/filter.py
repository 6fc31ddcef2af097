"""Path, pattern and condition filtering for batch input."""

import re
from dataclasses import dataclass
from pathlib import Path

from docport.config.constants import (
    ALLOWED_HIDDEN_DIRECTORIES,
    BACKUP_PREFIXES,
    BACKUP_SUFFIXES,
    EXCLUDED_DIRECTORIES,
    OS_METADATA_FILES,
    OS_METADATA_PREFIXES,
    TEMP_DIRECTORY_MARKERS,
    TOOL_ARTIFACT_MARKERS,
    TOOL_ARTIFACT_SUFFIXES,
)
from docport.config.settings import BatchConfig

_CONDITION_ATTR = re.compile(r'(?:madcap:conditions|data-mc-conditions)\s*=\s*"([^"]*)"', re.I)
_CONDITION_SPLIT = re.compile(r"[,;\s]+")


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of a filter check. ``reason`` is set when rejected."""

    accepted: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


ACCEPT = FilterDecision(True)


def _reject(reason: str) -> FilterDecision:
    return FilterDecision(False, reason)


def matches_pattern(name: str, pattern: str) -> bool:
    """Match a basename against a user pattern.

    A leading ``*`` means "ends with the rest"; anything else is a substring
    match. Both sides compare case-insensitively.
    """
    name = name.lower()
    pattern = pattern.lower()
    if pattern.startswith("*"):
        return name.endswith(pattern[1:])
    return pattern in name


def condition_tokens(value: str) -> list[str]:
    """Split a condition attribute into bare condition names.

    ``"Default.Deprecated, Status.Print-Only"`` becomes
    ``["deprecated", "print-only"]``.
    """
    tokens = []
    for raw in _CONDITION_SPLIT.split(value):
        if not raw:
            continue
        tokens.append(raw.rsplit(".", 1)[-1].lower())
    return tokens


def find_excluded_conditions(content: str, excluded: tuple[str, ...] | frozenset[str]) -> list[str]:
    """Return excluded condition names used anywhere in ``content``."""
    excluded_set = set(excluded)
    found: list[str] = []
    for match in _CONDITION_ATTR.finditer(content):
        for token in condition_tokens(match.group(1)):
            if token in excluded_set and token not in found:
                found.append(token)
    return found


class PathFilter:
    """Decides which directories to descend into and which files to convert.

    Rules are applied in a fixed order and the first rejection wins, so the
    reported reason is stable for a given path.
    """

    def __init__(self, config: BatchConfig) -> None:
        self.config = config
        self._extensions = frozenset(config.supported_extensions)
        self._excluded_conditions = frozenset(config.excluded_conditions)

    def accept_directory(self, path: Path) -> FilterDecision:
        name = path.name.lower()
        if name in EXCLUDED_DIRECTORIES:
            return _reject(f"excluded directory: {path.name}")
        if any(marker in name for marker in TEMP_DIRECTORY_MARKERS):
            return _reject(f"temporary directory: {path.name}")
        if name.startswith(".") and name not in ALLOWED_HIDDEN_DIRECTORIES:
            return _reject(f"hidden directory: {path.name}")
        return ACCEPT

    def accept_file(self, path: Path) -> FilterDecision:
        name = path.name
        lower = name.lower()

        if lower in OS_METADATA_FILES or lower.startswith(OS_METADATA_PREFIXES):
            return _reject("system metadata file")
        if lower.endswith(BACKUP_SUFFIXES) or lower.startswith(BACKUP_PREFIXES):
            return _reject("backup or temporary file")
        if lower.endswith(TOOL_ARTIFACT_SUFFIXES) or any(
            marker in lower for marker in TOOL_ARTIFACT_MARKERS
        ):
            return _reject("tool artifact")

        if path.suffix.lower() not in self._extensions:
            return _reject(f"unsupported extension: {path.suffix or '(none)'}")

        for pattern in self.config.exclude_patterns:
            if matches_pattern(name, pattern):
                return _reject(f"excluded by pattern: {pattern}")

        if self.config.include_patterns and not any(
            matches_pattern(name, p) for p in self.config.include_patterns
        ):
            return _reject("not matched by include patterns")

        return ACCEPT

    def accept(self, path: Path, is_dir: bool) -> FilterDecision:
        """Check a directory entry."""
        return self.accept_directory(path) if is_dir else self.accept_file(path)

    def check_conditions(self, content: str) -> FilterDecision:
        """Reject documents tagged with an excluded condition.

        Needs the document text, so the executor applies it once the file is read.
        """
        if not self._excluded_conditions:
            return ACCEPT
        found = find_excluded_conditions(content, self._excluded_conditions)
        if found:
            return _reject(f"condition exclusion: {', '.join(found)}")
        return ACCEPT
