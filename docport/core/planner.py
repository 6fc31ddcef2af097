"""Output path planning: mirror or TOC-plan layout, heading renames, unique claims."""

import html
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from docport.config.constants import (
    DEFAULT_OUTPUT_EXTENSION,
    FORMAT_EXTENSIONS,
    SLUG_MAX_LENGTH,
)
from docport.config.settings import BatchConfig
from docport.core.state import CandidateFile
from docport.services.toc_plan import TocPlan
from docport.utils.fs import get_relative_path, to_posix
from docport.utils.logging import get_logger

log = get_logger(__name__)

NOT_IN_PLAN = "not in plan"

_H1 = re.compile(r"<h1\b[^>]*>(.*?)</h1\s*>", re.I | re.S)
_TITLE = re.compile(r"<title\b[^>]*>(.*?)</title\s*>", re.I | re.S)
_MC_HEADING = re.compile(
    r"<([a-z][a-z0-9]*)\b[^>]*data-mc-heading-level\s*=\s*[\"']1[\"'][^>]*>(.*?)</\1\s*>",
    re.I | re.S,
)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

_SLUG_DISALLOWED = re.compile(r"[^a-z0-9_\s-]", re.ASCII)
_SLUG_SEPARATORS = re.compile(r"[\s_]+")
_SLUG_HYPHENS = re.compile(r"-{2,}")


def extension_for(target_format: str) -> str:
    """File extension written for a target format."""
    return FORMAT_EXTENSIONS.get(target_format, DEFAULT_OUTPUT_EXTENSION)


def _clean_heading(fragment: str) -> str:
    text = html.unescape(_TAG.sub("", fragment))
    return _WHITESPACE.sub(" ", text).strip()


def extract_heading(content: str) -> str | None:
    """Find the document's level-1 heading text.

    Looks for the first ``<h1>``, then an element marked
    ``data-mc-heading-level="1"``, then ``<title>``. Returns None when none
    has text.
    """
    for pattern, group in ((_H1, 1), (_MC_HEADING, 2), (_TITLE, 1)):
        for match in pattern.finditer(content):
            text = _clean_heading(match.group(group))
            if text:
                return text
    return None


def slugify(text: str) -> str:
    """Turn heading text into a filename stem.

    >>> slugify("Getting Started!!")
    'getting-started'
    """
    slug = _SLUG_DISALLOWED.sub("", text.lower())
    slug = _SLUG_SEPARATORS.sub("-", slug)
    slug = _SLUG_HYPHENS.sub("-", slug).strip("-")
    return slug[:SLUG_MAX_LENGTH].strip("-")


class PathStrategy(Protocol):
    """Chooses the default output path for a candidate, or None to skip it."""

    name: str

    def default_output(self, candidate: CandidateFile) -> Path | None: ...


class MirrorStrategy:
    """Mirror the input tree under the output root."""

    name = "mirror"

    def __init__(self, input_root: Path, output_root: Path, config: BatchConfig) -> None:
        self.input_root = input_root
        self.output_root = output_root
        self.extension = extension_for(config.target_format)
        self.preserve_structure = config.preserve_structure

    def default_output(self, candidate: CandidateFile) -> Path:
        filename = candidate.path.stem + self.extension
        if not self.preserve_structure:
            return self.output_root / filename
        rel_dir = get_relative_path(candidate.path.parent, self.input_root)
        if rel_dir.is_absolute():
            rel_dir = Path()
        return self.output_root / rel_dir / filename


class PlanStrategy:
    """Place outputs where an externally supplied TOC plan says.

    Plan keys are matched relative to the content root first, then relative to
    the input root. Candidates missing from the plan get no output.
    """

    name = "toc-plan"

    def __init__(
        self,
        plan: TocPlan,
        input_root: Path,
        output_root: Path,
        config: BatchConfig,
        content_root: Path | None = None,
    ) -> None:
        self.input_root = input_root
        self.output_root = output_root
        self.content_root = content_root
        self.plan = plan
        self.extension = extension_for(config.target_format)
        self._mapping = {_plan_key(k): v for k, v in plan.file_mapping.items()}

    def _lookup(self, candidate: CandidateFile) -> str | None:
        for base in (self.content_root, self.input_root):
            if base is None:
                continue
            rel = get_relative_path(candidate.path, base)
            if rel.is_absolute():
                continue
            target = self._mapping.get(_plan_key(to_posix(rel)))
            if target is not None:
                return target
        return None

    def default_output(self, candidate: CandidateFile) -> Path | None:
        target = self._lookup(candidate)
        if target is None:
            return None
        output = self.output_root / target.lstrip("/")
        if output.suffix.lower() != self.extension:
            output = output.with_suffix(self.extension)
        return output


def _plan_key(path: str) -> str:
    key = path.replace("\\", "/")
    while key.startswith("./"):
        key = key[2:]
    return key.lstrip("/").lower()


@dataclass(frozen=True)
class PathProposal:
    """Where a task would like to write, before uniqueness is enforced."""

    default_path: Path | None
    preferred_path: Path | None = None
    skip_reason: str | None = None
    heading: str | None = None


class OutputPathPlanner:
    """Plans output paths and records heading-driven renames.

    ``propose`` is pure and may run concurrently. ``claim`` must be called
    sequentially in discovery order; it makes every output path unique within
    the run by appending ``-2``, ``-3``, ... and records renames in the
    filename mapping.
    """

    def __init__(
        self,
        strategy: PathStrategy,
        input_root: Path,
        output_root: Path,
        config: BatchConfig,
    ) -> None:
        self.strategy = strategy
        self.input_root = input_root
        self.output_root = output_root
        self.rename_from_heading = config.rename_files_from_heading
        self.filename_mapping: dict[str, str] = {}
        self._claimed: set[str] = set()

    def propose(self, candidate: CandidateFile, content: str | None = None) -> PathProposal:
        default = self.strategy.default_output(candidate)
        if default is None:
            return PathProposal(default_path=None, skip_reason=NOT_IN_PLAN)

        if not self.rename_from_heading or content is None:
            return PathProposal(default_path=default, preferred_path=default)

        heading = extract_heading(content)
        slug = slugify(heading) if heading else ""
        if not slug:
            return PathProposal(default_path=default, preferred_path=default, heading=heading)
        return PathProposal(
            default_path=default,
            preferred_path=default.with_name(slug + default.suffix),
            heading=heading,
        )

    def claim(self, candidate: CandidateFile, proposal: PathProposal) -> Path:
        """Reserve a unique output path for ``candidate``."""
        if proposal.preferred_path is None:
            raise ValueError(f"No output path proposed for {candidate.path}")

        preferred = proposal.preferred_path
        final = preferred
        counter = 2
        while str(final).lower() in self._claimed:
            final = preferred.with_name(f"{preferred.stem}-{counter}{preferred.suffix}")
            counter += 1
        self._claimed.add(str(final).lower())

        if final != preferred:
            log.info("Output path collision", input=str(candidate.path), output=str(final))

        if self.rename_from_heading and final != proposal.default_path:
            original = to_posix(get_relative_path(candidate.path, self.input_root))
            renamed = to_posix(get_relative_path(final, self.output_root))
            self.filename_mapping[original] = renamed
            log.debug("Renamed from heading", original=original, renamed=renamed)

        return final
