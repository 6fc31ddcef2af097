"""Input discovery: a filtered, lexically ordered walk of the input tree."""

import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from docport.config.settings import BatchConfig
from docport.core.filter import PathFilter
from docport.core.state import CandidateFile
from docport.exceptions import DiscoveryError
from docport.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class DirectoryStats:
    """Summary of an input tree."""

    total_files: int = 0
    supported_files: int = 0
    directories: int = 0
    total_size: int = 0
    by_extension: Counter = field(default_factory=Counter)


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise DiscoveryError(directory, e) from e


class FileDiscoverer:
    """Walks an input root and yields candidate documents.

    The walk is depth-first in lexical order, uses an explicit work stack
    bounded by ``max_depth`` and never follows directory symlinks. Rejected
    directories are pruned before descent. Unreadable directories are logged,
    recorded in ``errors`` and skipped.
    """

    def __init__(
        self,
        config: BatchConfig,
        path_filter: PathFilter | None = None,
        skip_dirs: list[Path] | None = None,
    ) -> None:
        self.config = config
        self.filter = path_filter or PathFilter(config)
        self.skip_dirs = {p.resolve() for p in skip_dirs or []}
        self.errors: list[DiscoveryError] = []

    def _walk(self, root: Path):
        """Yield ``(entry_path, is_dir)`` for every visited entry."""
        # Entries are pushed in reverse order so they pop in lexical order
        stack: list[tuple[Path, bool, int]] = [(root, True, -1)]
        while stack:
            path, is_dir, depth = stack.pop()
            if not is_dir:
                yield path, False
                continue

            if depth >= 0:
                yield path, True
            if depth >= 0 and not self.config.recursive:
                continue
            if depth >= self.config.max_depth:
                log.warning("Max discovery depth reached", directory=str(path), depth=depth)
                continue

            try:
                entries = _sorted_entries(path)
            except DiscoveryError as e:
                log.warning("Skipping unreadable directory", directory=str(path), error=str(e.cause))
                self.errors.append(e)
                continue

            children: list[tuple[Path, bool, int]] = []
            for entry in entries:
                entry_path = Path(entry.path)
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if not self.filter.accept_directory(entry_path):
                            continue
                        if self.skip_dirs and entry_path.resolve() in self.skip_dirs:
                            continue
                        children.append((entry_path, True, depth + 1))
                    elif entry.is_file():
                        children.append((entry_path, False, depth + 1))
                except OSError as e:
                    log.debug("Cannot stat entry", path=str(entry_path), error=str(e))
            stack.extend(reversed(children))

    def discover(self, root: Path) -> list[CandidateFile]:
        """Collect accepted documents under ``root`` in discovery order."""
        self.errors = []
        candidates: list[CandidateFile] = []

        for path, is_dir in self._walk(root):
            if is_dir:
                continue
            decision = self.filter.accept_file(path)
            if not decision:
                log.debug("Filtered file", path=str(path), reason=decision.reason)
                continue
            try:
                size = path.stat().st_size
            except OSError as e:
                log.warning("Cannot stat file", path=str(path), error=str(e))
                continue
            candidates.append(CandidateFile(path=path, size_bytes=size, extension=path.suffix.lower()))

        log.info(
            "Discovery complete",
            root=str(root),
            files=len(candidates),
            unreadable_dirs=len(self.errors),
        )
        return candidates

    def directory_stats(self, root: Path) -> DirectoryStats:
        """Count files, supported documents and extensions under ``root``."""
        self.errors = []
        stats = DirectoryStats()
        for path, is_dir in self._walk(root):
            if is_dir:
                stats.directories += 1
                continue
            stats.total_files += 1
            ext = path.suffix.lower() or "(none)"
            stats.by_extension[ext] += 1
            try:
                stats.total_size += path.stat().st_size
            except OSError:
                log.debug("Cannot stat file", path=str(path))
            if self.filter.accept_file(path):
                stats.supported_files += 1
        return stats


def discover_files(root: Path, config: BatchConfig) -> list[CandidateFile]:
    """Convenience wrapper around FileDiscoverer.discover."""
    return FileDiscoverer(config).discover(root)
