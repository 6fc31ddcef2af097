"""Supplementary batch outputs: stylesheet, variables, glossary and master document."""

from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from docport.config.constants import (
    ASCIIDOC_VARIABLES_FILE,
    GLOSSARY_FILE,
    MASTER_DOC_STEM,
    WRITERSIDE_VARIABLES_FILE,
)
from docport.core.planner import extension_for
from docport.core.result import SupplementaryError
from docport.core.state import BatchJob
from docport.services.protocols import GlossaryGenerator, VariableExtractor
from docport.services.toc_plan import TocPlan
from docport.utils.fs import atomic_write, ensure_directory, get_relative_path, to_posix
from docport.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class OutputManager:
    """Decides where the once-per-batch outputs go and writes them.

    Every ``write_*`` method is guarded by a flag on the job's run state, so
    calling it again in the same run is a no-op. Callers go through
    ``run_step`` so a failing collaborator or an unwritable path is logged
    and recorded instead of ending the run.
    """

    def __init__(
        self,
        job: BatchJob,
        variable_extractor: VariableExtractor | None = None,
        glossary_generator: GlossaryGenerator | None = None,
    ) -> None:
        self.job = job
        self.config = job.config
        self.variable_extractor = variable_extractor
        self.glossary_generator = glossary_generator
        self.errors: list[SupplementaryError] = []

    @property
    def output_root(self) -> Path:
        return self.job.output_root

    @property
    def variable_format(self) -> str:
        if self.config.variable_format:
            return self.config.variable_format
        return "writerside" if self.config.target_format == "writerside-markdown" else "adoc"

    def variables_path(self) -> Path:
        if self.config.variables_output_path:
            return self.output_root / self.config.variables_output_path
        if self.variable_format == "writerside":
            return self.output_root / WRITERSIDE_VARIABLES_FILE
        return self.output_root / ASCIIDOC_VARIABLES_FILE

    def stylesheet_path(self) -> Path:
        return self.output_root / self.config.stylesheet_path

    def run_step(self, step: str, func: Callable[..., T], *args) -> T | None:
        """Run one supplementary step. Returns None when it failed."""
        try:
            return func(*args)
        except Exception as e:
            error = str(e) or type(e).__name__
            log.error("Supplementary output failed", step=step, error=error)
            self.errors.append(SupplementaryError(step, error))
            return None

    # -- TOC plan ---------------------------------------------------------

    def create_folders(self, plan: TocPlan) -> int:
        created = 0
        for folder in plan.folder_structure:
            ensure_directory(self.output_root / folder.path.lstrip("/"))
            created += 1
        return created

    # -- stylesheet -------------------------------------------------------

    def write_stylesheet(self, stylesheet: str | None) -> Path | None:
        state = self.job.state
        if (
            state.stylesheet_written
            or not stylesheet
            or not self.config.generate_stylesheet
            or self.config.target_format != "zendesk"
        ):
            return None
        # One attempt per run, even if the write fails
        state.stylesheet_written = True
        path = self.stylesheet_path()
        with atomic_write(path) as f:
            f.write(stylesheet)
        log.info("Stylesheet written", path=str(path))
        return path

    # -- variables --------------------------------------------------------

    @property
    def collects_variables(self) -> bool:
        return self.config.extract_variables and self.variable_extractor is not None

    def extract_project_variables(self) -> None:
        if not self.collects_variables:
            if self.config.extract_variables:
                log.warning("Variable extraction requested but no extractor configured")
            return
        project_root = self.job.state.project_root or self.job.input_root
        self.variable_extractor.extract_from_project(project_root)

    def add_variables(self, variables: list[dict]) -> None:
        if self.collects_variables and variables:
            self.variable_extractor.add_variables(variables)

    def write_variables(self) -> Path | None:
        state = self.job.state
        if state.variables_written or not self.collects_variables:
            return None
        content = self.variable_extractor.render(self.variable_format)
        if not content:
            log.info("No variables to write")
            return None
        path = self.variables_path()
        with atomic_write(path) as f:
            f.write(content)
        state.variables_written = True
        log.info("Variables file written", path=str(path), format=self.variable_format)
        return path

    # -- glossary ---------------------------------------------------------

    def write_glossary(self) -> Path | None:
        if not self.config.include_glossary or self.config.target_format != "asciidoc":
            return None
        if self.glossary_generator is None:
            log.warning("Glossary requested but no glossary generator configured")
            return None
        project_root = self.job.state.project_root or self.job.input_root
        content = self.glossary_generator.generate(project_root, self.config.target_format)
        if not content:
            log.info("No glossary entries found")
            return None
        path = self.output_root / GLOSSARY_FILE
        with atomic_write(path) as f:
            f.write(content)
        log.info("Glossary written", path=str(path))
        return path

    # -- master document --------------------------------------------------

    def write_master_document(self, outputs: list[Path], title: str = "Documentation") -> Path | None:
        """Write a document that pulls every converted file together.

        AsciiDoc gets a book with one chapter per output directory; other
        formats get a plain list of links.
        """
        if not self.config.generate_master_doc:
            return None
        extension = extension_for(self.config.target_format)
        path = self.output_root / f"{MASTER_DOC_STEM}{extension}"
        rel_paths = sorted(
            to_posix(get_relative_path(p, self.output_root)) for p in outputs if p != path
        )

        if self.config.target_format == "asciidoc":
            content = self._asciidoc_master(rel_paths, title)
        elif self.config.target_format == "zendesk":
            content = f"<h1>{title}</h1>\n" + "".join(
                f'<a href="{rel}">{Path(rel).name}</a><br>\n' for rel in rel_paths
            )
        else:
            content = f"# {title}\n\n" + "".join(
                f"- [{Path(rel).name}]({rel})\n" for rel in rel_paths
            )

        with atomic_write(path) as f:
            f.write(content)
        log.info("Master document written", path=str(path), documents=len(rel_paths))
        return path

    def _asciidoc_master(self, rel_paths: list[str], title: str) -> str:
        lines = [
            f"= {title}",
            ":doctype: book",
            ":toc: left",
            ":toclevels: 3",
            ":sectnums:",
            ":icons: font",
            "",
        ]
        if self.job.state.variables_written:
            variables = to_posix(get_relative_path(self.variables_path(), self.output_root))
            lines += [f"include::{variables}[]", ""]

        groups: dict[str, list[str]] = defaultdict(list)
        for rel in rel_paths:
            if rel == GLOSSARY_FILE:
                continue
            groups[str(Path(rel).parent.as_posix())].append(rel)

        for directory in sorted(groups):
            name = "Root" if directory == "." else Path(directory).name
            heading = name.replace("-", " ").replace("_", " ").title()
            lines += ["[chapter]", f"== {heading}", ""]
            for rel in groups[directory]:
                lines += [f"include::{rel}[leveloffset=+1]", ""]

        if GLOSSARY_FILE in rel_paths:
            lines += ["[glossary]", f"include::{GLOSSARY_FILE}[]", ""]
        return "\n".join(lines)
