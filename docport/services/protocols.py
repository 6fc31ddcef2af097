"""Protocol definitions for the collaborators docport orchestrates.

Converters, TOC planners, variable extraction and glossary generation live
outside the orchestrator. These protocols define the boundary so real
implementations and test doubles can be injected.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from docport.config.settings import BatchConfig
    from docport.services.toc_plan import TocPlan


@dataclass
class QualityReport:
    """Quality score attached to one converted document."""

    score: float
    issues: list[str] = field(default_factory=list)


@dataclass
class ConversionMetadata:
    """Side information a converter reports alongside the content."""

    images: list[str] = field(default_factory=list)
    variables: list[dict[str, Any]] = field(default_factory=list)
    stylesheet: str | None = None
    quality_report: QualityReport | None = None
    title: str | None = None


@dataclass
class ConversionOutput:
    """What a converter returns for one document."""

    content: str
    metadata: ConversionMetadata = field(default_factory=ConversionMetadata)


class DocumentConverter(Protocol):
    """Converts one source document into the target format."""

    async def convert(
        self,
        input_path: Path,
        output_path: Path,
        options: "BatchConfig",
    ) -> ConversionOutput:
        """Convert a document.

        Args:
            input_path: Source document
            output_path: Planned output location (the orchestrator writes it)
            options: The batch configuration

        Returns:
            Converted content and metadata
        """
        ...


class TocPlanner(Protocol):
    """Discovers TOC structures in a project and turns them into a plan."""

    def discover(self, project_root: Path) -> list[Any]:
        """Return TOC structures found under ``project_root`` (may be empty)."""
        ...

    def create_plan(self, structures: list[Any], target_format: str) -> "TocPlan":
        """Build the file mapping and folder layout for ``structures``."""
        ...


class VariableExtractor(Protocol):
    """Collects authoring variables and renders them as one include file."""

    def extract_from_project(self, project_root: Path) -> None:
        """Load project-level variable sets."""
        ...

    def add_variables(self, variables: list[dict[str, Any]]) -> None:
        """Add variables reported by a converted document."""
        ...

    def render(self, variable_format: str) -> str | None:
        """Render collected variables, or None when there are none."""
        ...


class GlossaryGenerator(Protocol):
    """Builds a glossary document for the project."""

    def generate(self, project_root: Path, target_format: str) -> str | None:
        """Return glossary content, or None when the project has no glossary."""
        ...
