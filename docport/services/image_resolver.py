"""Image asset resolution: copy image directories once, then per-document images."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote

from docport.config.constants import (
    CONVENTIONAL_IMAGE_DIRS,
    IMAGE_EXTENSIONS,
    IMAGE_FORMATS,
    IMAGE_OUTPUT_DIR,
    IMAGE_SEARCH_MAX_DEPTH,
    NON_ASSET_DIRECTORIES,
    OS_METADATA_FILES,
    OS_METADATA_PREFIXES,
)
from docport.core.filter import PathFilter
from docport.core.state import BatchJob
from docport.exceptions import AssetCopyError
from docport.utils.fs import copy_file_safe, is_within
from docport.utils.logging import get_logger

log = get_logger(__name__)


def is_image(path: Path) -> bool:
    name = path.name.lower()
    if name in OS_METADATA_FILES or name.startswith(OS_METADATA_PREFIXES):
        return False
    return path.suffix.lower() in IMAGE_EXTENSIONS


@dataclass
class AssetContext:
    """Everything a resolution strategy needs for one batch."""

    job: BatchJob
    path_filter: PathFilter
    copied: list[Path] = field(default_factory=list)

    @property
    def input_root(self) -> Path:
        return self.job.input_root

    @property
    def output_root(self) -> Path:
        return self.job.output_root

    def copy(self, source: Path, target: Path) -> bool:
        """Copy one file unless the target exists. Returns True if copied."""
        if target.exists():
            return False
        try:
            copy_file_safe(source, target)
        except OSError as e:
            log.warning("Image copy failed", error=str(AssetCopyError(source, target, e)))
            return False
        self.copied.append(target)
        return True

    def walk(self, root: Path, max_depth: int):
        """Yield ``(directory, files)`` pairs under ``root``, depth-bounded.

        Never descends into the output root or into filtered directories.
        """
        stack: list[tuple[Path, int]] = [(root, 0)]
        while stack:
            directory, depth = stack.pop()
            if is_within(directory, self.output_root):
                continue
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                log.debug("Cannot list directory", directory=str(directory), error=str(e))
                continue

            files = []
            subdirs = []
            for entry in entries:
                path = Path(entry.path)
                if entry.is_dir(follow_symlinks=False):
                    if depth < max_depth and self.path_filter.accept_directory(path):
                        subdirs.append((path, depth + 1))
                elif entry.is_file():
                    files.append(path)
            yield directory, files
            stack.extend(reversed(subdirs))

    def copy_tree(self, source: Path, target: Path) -> int:
        """Copy image files from ``source`` into ``target``, keeping layout."""
        count = 0
        for directory, files in self.walk(source, IMAGE_SEARCH_MAX_DEPTH * 2):
            rel = directory.relative_to(source)
            for file in files:
                if is_image(file) and self.copy(file, target / rel / file.name):
                    count += 1
        return count


class ResolutionStrategy(Protocol):
    """One named way of bringing a project's image directories across.

    ``try_resolve`` returns None when the strategy does not apply, otherwise
    the number of files it copied.
    """

    name: str

    def try_resolve(self, ctx: AssetContext) -> int | None: ...


class ConventionalDirectoriesStrategy:
    """Copy well-known image folders into ``Images`` under the output root."""

    name = "conventional-directories"

    def try_resolve(self, ctx: AssetContext) -> int | None:
        found = False
        copied = 0
        target = ctx.output_root / IMAGE_OUTPUT_DIR
        for rel in CONVENTIONAL_IMAGE_DIRS:
            source = ctx.input_root / rel
            if not source.is_dir():
                continue
            if is_within(source, target) or is_within(source, ctx.output_root):
                log.warning("Skipping recursive image copy", source=str(source), target=str(target))
                continue
            found = True
            copied += ctx.copy_tree(source, target)
            log.debug("Copied image directory", source=str(source), target=str(target))
        return copied if found else None


class ImageDirectorySearchStrategy:
    """Find directories holding images and mirror them under the output root."""

    name = "image-directory-search"

    def try_resolve(self, ctx: AssetContext) -> int | None:
        found = False
        copied = 0
        for directory, files in ctx.walk(ctx.input_root, IMAGE_SEARCH_MAX_DEPTH):
            if directory.name.lower() in NON_ASSET_DIRECTORIES:
                continue
            images = [f for f in files if is_image(f)]
            if not images:
                continue
            found = True
            rel = directory.relative_to(ctx.input_root)
            for image in images:
                if ctx.copy(image, ctx.output_root / rel / image.name):
                    copied += 1
        return copied if found else None


class FlatImageCollectStrategy:
    """Last resort: gather every image into ``Images`` by filename."""

    name = "flat-image-collect"

    def try_resolve(self, ctx: AssetContext) -> int | None:
        target = ctx.output_root / IMAGE_OUTPUT_DIR
        found = False
        copied = 0
        for _directory, files in ctx.walk(ctx.input_root, ctx.job.config.max_depth):
            for image in (f for f in files if is_image(f)):
                found = True
                if ctx.copy(image, target / image.name):
                    copied += 1
        return copied if found else None


DEFAULT_STRATEGIES: tuple[ResolutionStrategy, ...] = (
    ConventionalDirectoriesStrategy(),
    ImageDirectorySearchStrategy(),
    FlatImageCollectStrategy(),
)


def _split_reference(ref: str) -> str:
    path = ref.split("#", 1)[0].split("?", 1)[0]
    return unquote(path).replace("\\", "/")


class ImageAssetResolver:
    """Brings images across for each converted document.

    Directory-level copying runs once per batch, on the first call, and only
    for formats that reference copied image folders. Images a converter
    reports for a document are then resolved one by one: relative to the
    source document, the content root, the project root, the input root, and
    finally by filename anywhere in the input tree.
    """

    def __init__(
        self,
        job: BatchJob,
        path_filter: PathFilter | None = None,
        strategies: tuple[ResolutionStrategy, ...] = DEFAULT_STRATEGIES,
    ) -> None:
        self.job = job
        self.strategies = strategies
        self._ctx = AssetContext(job=job, path_filter=path_filter or PathFilter(job.config))
        self._filename_index: dict[str, Path] | None = None
        self.calls = 0

    @property
    def enabled(self) -> bool:
        return self.job.config.copy_images

    def copy_image_directories(self) -> list[Path]:
        """Run the directory strategies in order until one applies."""
        state = self.job.state
        if state.assets_copied:
            return []
        state.assets_copied = True

        if self.job.config.target_format not in IMAGE_FORMATS:
            return []

        start = len(self._ctx.copied)
        for strategy in self.strategies:
            copied = strategy.try_resolve(self._ctx)
            if copied is not None:
                log.info("Image directories resolved", strategy=strategy.name, copied=copied)
                return self._ctx.copied[start:]
        log.info("No image directories found", input_root=str(self.job.input_root))
        return []

    def _index(self) -> dict[str, Path]:
        if self._filename_index is None:
            index: dict[str, Path] = {}
            for _directory, files in self._ctx.walk(self.job.input_root, self.job.config.max_depth):
                for file in files:
                    if is_image(file):
                        index.setdefault(file.name.lower(), file)
            self._filename_index = index
        return self._filename_index

    def find_source(self, ref: str, document: Path) -> Path | None:
        """Locate the file an image reference points to."""
        rel = _split_reference(ref)
        if not rel:
            return None
        state = self.job.state
        bases = [
            document.parent,
            state.content_root,
            state.project_root,
            self.job.input_root,
        ]
        for base in bases:
            if base is None:
                continue
            candidate = (base / rel.lstrip("/")).resolve()
            if candidate.is_file():
                return candidate
        return self._index().get(Path(rel).name.lower())

    def _target_for(self, ref: str, output_path: Path, source: Path) -> Path:
        rel = _split_reference(ref)
        target = (output_path.parent / rel.lstrip("/")).resolve()
        if rel.startswith("/") or not is_within(target, self.job.output_root):
            return self.job.output_root / IMAGE_OUTPUT_DIR / source.name
        return target

    def resolve(self, input_path: Path, output_path: Path | None, images: list[str]) -> list[Path]:
        """Copy assets for one task. Called once per task, success or failure."""
        self.calls += 1
        if not self.enabled:
            return []

        produced = self.copy_image_directories()
        if output_path is None:
            return produced

        for ref in images:
            if ref.startswith(("http://", "https://", "data:", "//")):
                continue
            source = self.find_source(ref, input_path)
            if source is None:
                log.warning("Unresolved image", image=ref, document=str(input_path))
                continue
            target = self._target_for(ref, output_path, source)
            if self._ctx.copy(source, target):
                produced.append(target)
        return produced
