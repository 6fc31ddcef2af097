"""Cross-reference rewriting after heading-driven renames."""

import os
import posixpath
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from docport.config.constants import FUZZY_MATCH_THRESHOLD, IMAGE_EXTENSIONS
from docport.exceptions import ReferenceRewriteError
from docport.utils.fs import atomic_write, get_relative_path, read_text, to_posix
from docport.utils.logging import get_logger
from docport.utils.similarity import similarity

log = get_logger(__name__)

_EXTERNAL = ("http://", "https://", "mailto:", "data:", "#", "//", "ftp://", "tel:")

# Each pattern captures the reference in the named group "target".
_LINK_PATTERNS = {
    "asciidoc": [
        re.compile(r"\b(?:xref|link):(?P<target>[^\s\[\]]+)\[[^\]\n]*\]"),
        re.compile(r"<<(?P<target>[^,>\s]+\.(?:adoc|htm|html)(?:#[^,>\s]*)?)(?:,[^>]*)?>>"),
    ],
    "markdown": [
        re.compile(r"(?<!!)\[[^\]\n]*\]\((?P<target>[^)\s]+)(?:\s+\"[^\"]*\")?\)"),
    ],
    "html": [
        re.compile(r"<a\b[^>]*?\bhref\s*=\s*[\"'](?P<target>[^\"']+)[\"']", re.I),
    ],
}
_IMAGE_PATTERNS = {
    "asciidoc": [re.compile(r"\bimage::?(?P<target>[^\s\[\]]+)\[")],
    "markdown": [re.compile(r"!\[[^\]\n]*\]\((?P<target>[^)\s]+)(?:\s+\"[^\"]*\")?\)")],
    "html": [re.compile(r"<img\b[^>]*?\bsrc\s*=\s*[\"'](?P<target>[^\"']+)[\"']", re.I)],
}
_SYNTAX = {
    "asciidoc": "asciidoc",
    "writerside-markdown": "markdown",
    "markdown": "markdown",
    "zendesk": "html",
}
_REWRITABLE_SUFFIXES = {".adoc", ".md", ".html", ".htm"}


def split_reference(ref: str) -> tuple[str, str | None]:
    """Split ``path#anchor`` into its parts."""
    if "#" in ref:
        path, anchor = ref.split("#", 1)
        return path, anchor
    return ref, None


def is_external(ref: str) -> bool:
    return not ref or ref.lower().startswith(_EXTERNAL)


def _norm(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return posixpath.normpath(path) if path else path


def _strip_ext(path: str) -> str:
    return posixpath.splitext(path)[0]


@dataclass
class RewriteReport:
    files_scanned: int = 0
    files_changed: int = 0
    references_rewritten: int = 0
    errors: list[ReferenceRewriteError] = field(default_factory=list)


class CrossReferenceRewriter:
    """Points references at renamed documents.

    ``filename_mapping`` maps source paths (relative to the input root) to
    output paths (relative to the output root). ``sources`` maps each output
    file to the document it came from, so relative references can be
    resolved against the original location.
    """

    def __init__(
        self,
        filename_mapping: dict[str, str],
        input_root: Path,
        output_root: Path,
        target_format: str,
        sources: dict[Path, Path] | None = None,
    ) -> None:
        self.mapping = {_norm(k): _norm(v) for k, v in filename_mapping.items()}
        self.input_root = input_root
        self.output_root = output_root
        self.syntax = _SYNTAX.get(target_format)
        self.sources = sources or {}
        self._keys_noext = {_strip_ext(k): k for k in self.mapping}
        self._targets = set(self.mapping.values())
        self._key_basenames: dict[str, list[str]] = defaultdict(list)
        self._target_basenames: dict[str, list[str]] = defaultdict(list)
        for key, target in self.mapping.items():
            self._key_basenames[posixpath.basename(key).lower()].append(key)
            self._target_basenames[posixpath.basename(target).lower()].append(key)
        self._asset_index: dict[str, Path] | None = None

    # -- resolution -------------------------------------------------------

    @staticmethod
    def _relative_dir(path: Path, root: Path) -> str | None:
        rel = get_relative_path(path, root)
        return None if rel.is_absolute() else to_posix(rel)

    def _source_dir(self, output_file: Path) -> str | None:
        source = self.sources.get(output_file)
        if source is None:
            return None
        return self._relative_dir(source.parent, self.input_root)

    def _points_at_target(self, path: str, output_file: Path) -> bool:
        output_dir = self._relative_dir(output_file.parent, self.output_root)
        if output_dir is None:
            return False
        return _norm(posixpath.join(output_dir, path)) in self._targets

    def _exists(self, path: str, output_file: Path) -> bool:
        if (output_file.parent / path).is_file():
            return True
        source = self.sources.get(output_file)
        return source is not None and (source.parent / path).is_file()

    @staticmethod
    def _closest(keys: list[str], directory: str | None, path_of) -> str:
        """Pick the entry living in ``directory``, else the first one."""
        if directory is not None:
            for key in keys:
                if (posixpath.dirname(path_of(key)) or ".") == directory:
                    return key
        return keys[0]

    def resolve_key(self, path: str, output_file: Path) -> str | None:
        """Find the mapping key a reference path denotes, or None."""
        # Already points at a renamed output
        if self._points_at_target(path, output_file):
            return None

        ref = _norm(path)
        candidates = [ref]
        source_dir = self._source_dir(output_file)
        if source_dir is not None:
            candidates.append(_norm(posixpath.join(source_dir, path)))

        # 1. exact
        for candidate in candidates:
            if candidate in self.mapping:
                return candidate
        # 2. ignoring extension
        for candidate in candidates:
            key = self._keys_noext.get(_strip_ext(candidate))
            if key is not None:
                return key
        # Links to files that exist are correct already
        if self._exists(path, output_file):
            return None
        # 3. basename, against source names then renamed targets
        basename = posixpath.basename(ref).lower()
        if basename in self._key_basenames:
            return self._closest(self._key_basenames[basename], source_dir, str)
        if basename in self._target_basenames:
            output_dir = self._relative_dir(output_file.parent, self.output_root)
            return self._closest(self._target_basenames[basename], output_dir, self.mapping.get)
        # 4. fuzzy
        best_key, best_score = None, 0.0
        for key in self.mapping:
            score = similarity(ref, key)
            if score > best_score:
                best_key, best_score = key, score
        if best_key is not None and best_score >= FUZZY_MATCH_THRESHOLD:
            log.debug("Fuzzy reference match", reference=path, key=best_key, score=round(best_score, 2))
            return best_key
        return None

    def _relative_to(self, target: Path, output_file: Path) -> str:
        if target.parent == output_file.parent:
            return target.name
        return Path(os.path.relpath(target, output_file.parent)).as_posix()

    def rewrite_link(self, ref: str, output_file: Path) -> str:
        if is_external(ref):
            return ref
        path, anchor = split_reference(ref)
        if not path:
            return ref
        key = self.resolve_key(path, output_file)
        if key is None:
            return ref
        new = self._relative_to(self.output_root / self.mapping[key], output_file)
        return f"{new}#{anchor}" if anchor is not None else new

    def _assets(self) -> dict[str, Path]:
        if self._asset_index is None:
            index: dict[str, Path] = {}
            for root, _dirs, files in os.walk(self.output_root):
                for name in sorted(files):
                    if Path(name).suffix.lower() in IMAGE_EXTENSIONS:
                        index.setdefault(name.lower(), Path(root) / name)
            self._asset_index = index
        return self._asset_index

    def rewrite_image(self, ref: str, output_file: Path) -> str:
        if is_external(ref):
            return ref
        path, anchor = split_reference(ref)
        if not path or (output_file.parent / path).is_file():
            return ref
        asset = self._assets().get(posixpath.basename(_norm(path)).lower())
        if asset is None:
            return ref
        new = self._relative_to(asset, output_file)
        return f"{new}#{anchor}" if anchor is not None else new

    # -- file processing --------------------------------------------------

    def rewrite_content(self, content: str, output_file: Path) -> tuple[str, int]:
        """Rewrite references in ``content``. Returns (new_content, changes)."""
        if self.syntax is None:
            return content, 0
        changes = 0

        def substitute(rewrite):
            def _sub(match: re.Match) -> str:
                nonlocal changes
                old = match.group("target")
                new = rewrite(old, output_file)
                if new == old:
                    return match.group(0)
                changes += 1
                start = match.start("target") - match.start()
                end = match.end("target") - match.start()
                whole = match.group(0)
                return whole[:start] + new + whole[end:]

            return _sub

        for pattern in _IMAGE_PATTERNS[self.syntax]:
            content = pattern.sub(substitute(self.rewrite_image), content)
        for pattern in _LINK_PATTERNS[self.syntax]:
            content = pattern.sub(substitute(self.rewrite_link), content)
        return content, changes

    def rewrite_file(self, output_file: Path) -> int:
        """Rewrite one file in place. Returns the number of changed references.

        Raises:
            ReferenceRewriteError: If the file cannot be read or written
        """
        try:
            original = read_text(output_file)
            updated, changes = self.rewrite_content(original, output_file)
            if updated != original:
                with atomic_write(output_file) as f:
                    f.write(updated)
        except OSError as e:
            raise ReferenceRewriteError(output_file, e) from e
        return changes

    def rewrite_all(self, output_files: list[Path]) -> RewriteReport:
        """Rewrite every output file; per-file failures are logged and skipped."""
        report = RewriteReport()
        if not self.mapping:
            return report

        for output_file in output_files:
            if output_file.suffix.lower() not in _REWRITABLE_SUFFIXES:
                continue
            report.files_scanned += 1
            try:
                changes = self.rewrite_file(output_file)
            except ReferenceRewriteError as e:
                log.error("Reference rewrite failed", path=str(output_file), error=str(e.cause))
                report.errors.append(e)
                continue
            if changes:
                report.files_changed += 1
                report.references_rewritten += changes

        log.info(
            "Cross-references rewritten",
            files=report.files_scanned,
            changed=report.files_changed,
            references=report.references_rewritten,
        )
        return report
