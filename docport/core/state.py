"""Batch data model: job, candidate files, task lifecycle and per-run state."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from docport.config.settings import BatchConfig
from docport.exceptions import StateError


@dataclass(frozen=True)
class CandidateFile:
    """A discovered input document."""

    path: Path
    size_bytes: int
    extension: str


class TaskStatus(str, Enum):
    """Lifecycle status of a conversion task."""

    PENDING = "pending"
    SKIPPED = "skipped"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class ConversionTask:
    """One input file moving through the executor.

    A task leaves PENDING exactly once. Any further transition is a
    programming error and raises StateError.
    """

    input: CandidateFile
    index: int  # 1-based position in discovery order
    total: int
    planned_output: Path | None = None
    status: TaskStatus = TaskStatus.PENDING
    skip_reason: str | None = None
    error: Exception | None = None
    output_path: Path | None = None
    produced_assets: list[Path] = field(default_factory=list)
    converter_result: Any | None = None

    def _leave_pending(self, status: TaskStatus) -> None:
        if self.status is not TaskStatus.PENDING:
            raise StateError(
                f"Task {self.index} ({self.input.path}) already {self.status.value}, "
                f"cannot become {status.value}"
            )
        self.status = status

    def skip(self, reason: str) -> None:
        self._leave_pending(TaskStatus.SKIPPED)
        self.skip_reason = reason

    def fail(self, error: Exception) -> None:
        self._leave_pending(TaskStatus.FAILED)
        self.error = error

    def succeed(
        self,
        output_path: Path,
        produced_assets: list[Path] | None = None,
        converter_result: Any | None = None,
    ) -> None:
        self._leave_pending(TaskStatus.SUCCEEDED)
        self.output_path = output_path
        self.produced_assets = list(produced_assets or [])
        self.converter_result = converter_result

    @property
    def is_terminal(self) -> bool:
        return self.status is not TaskStatus.PENDING


@dataclass
class BatchRunState:
    """Mutable once-per-run facts, owned by a single BatchJob.

    Only touched from the executor's sequential post-task step and the
    orchestrator, never from concurrently running conversions.
    """

    assets_copied: bool = False
    stylesheet_written: bool = False
    variables_written: bool = False
    content_root: Path | None = None
    project_root: Path | None = None


@dataclass(frozen=True)
class BatchJob:
    """One invocation of the batch orchestrator."""

    input_root: Path
    output_root: Path
    config: BatchConfig
    state: BatchRunState = field(default_factory=BatchRunState, compare=False)
