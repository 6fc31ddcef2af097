"""Batch results and their aggregation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from docport.config.constants import LOW_QUALITY_THRESHOLD
from docport.core.state import ConversionTask, TaskStatus
from docport.services.protocols import ConversionOutput
from docport.services.toc_plan import TocPlan


@dataclass(frozen=True)
class FileError:
    file: str
    error: str
    index: int
    total: int


@dataclass(frozen=True)
class SkippedFile:
    file: str
    reason: str


@dataclass(frozen=True)
class SupplementaryError:
    """A once-per-run output (variables, glossary, ...) that could not be produced."""

    step: str
    error: str


@dataclass(frozen=True)
class FileResult:
    """A succeeded document: source, output and what the converter reported."""

    input_path: Path
    output_path: Path
    converter_result: Any | None = None


@dataclass
class QualitySummary:
    mean_score: float
    total_issues: int
    low_scoring: list[str] = field(default_factory=list)
    threshold: int = LOW_QUALITY_THRESHOLD


@dataclass
class BatchResult:
    """Outcome of one batch run.

    ``total_files == converted + skipped + len(errors)`` holds once the run
    has finished. Failed supplementary outputs are listed separately and do
    not affect ``success``.
    """

    total_files: int = 0
    converted: int = 0
    skipped: int = 0
    errors: list[FileError] = field(default_factory=list)
    skipped_list: list[SkippedFile] = field(default_factory=list)
    results: list[FileResult] = field(default_factory=list)
    filename_mapping: dict[str, str] | None = None
    quality_summary: QualitySummary | None = None
    discovery_errors: list[str] = field(default_factory=list)
    supplementary_errors: list[SupplementaryError] = field(default_factory=list)
    toc_structure: TocPlan | None = None
    master_document: Path | None = None
    cancelled: bool = False

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors


class ResultAggregator:
    """Collects task outcomes in the order they are recorded."""

    def __init__(self, total_files: int = 0) -> None:
        self.result = BatchResult(total_files=total_files)
        self._quality: list[tuple[str, float, int]] = []

    def record(self, task: ConversionTask) -> None:
        """Record a task that has reached its terminal status."""
        name = str(task.input.path)
        if task.status is TaskStatus.SUCCEEDED:
            self.result.converted += 1
            self.result.results.append(
                FileResult(task.input.path, task.output_path, task.converter_result)
            )
            self._note_quality(name, task.converter_result)
        elif task.status is TaskStatus.SKIPPED:
            self.result.skipped += 1
            self.result.skipped_list.append(SkippedFile(name, task.skip_reason or "skipped"))
        elif task.status is TaskStatus.FAILED:
            self.result.errors.append(FileError(name, str(task.error), task.index, task.total))
        else:
            raise ValueError(f"Task {task.index} is still pending")

    def record_extra(self, input_path: Path, output_path: Path) -> None:
        """Count a generated document (e.g. a glossary) that had no source task."""
        self.result.total_files += 1
        self.result.converted += 1
        self.result.results.append(FileResult(input_path, output_path))

    def _note_quality(self, name: str, output: Any) -> None:
        if not isinstance(output, ConversionOutput):
            return
        report = output.metadata.quality_report
        if report is None:
            return
        self._quality.append((name, report.score, len(report.issues)))

    def finalize(self) -> BatchResult:
        if self._quality:
            scores = [score for _, score, _ in self._quality]
            self.result.quality_summary = QualitySummary(
                mean_score=sum(scores) / len(scores),
                total_issues=sum(issues for _, _, issues in self._quality),
                low_scoring=[
                    name for name, score, _ in self._quality if score < LOW_QUALITY_THRESHOLD
                ],
            )
        return self.result
