"""TOC plan model and a planner that loads a plan from disk."""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from docport.exceptions import ConfigurationError
from docport.utils.logging import get_logger

log = get_logger(__name__)


class TocFolder(BaseModel):
    """A folder the plan wants created under the output root."""

    path: str
    title: str | None = None


class TocPlan(BaseModel):
    """Maps source documents to output locations.

    ``file_mapping`` keys are source paths relative to the project content
    root (or input root); values are output paths relative to the output root.
    """

    file_mapping: dict[str, str] = Field(default_factory=dict)
    folder_structure: list[TocFolder] = Field(default_factory=list)


class StaticTocPlanner:
    """TocPlanner backed by a YAML or JSON plan file.

    ``discover`` returns the raw plan document as the single "structure";
    ``create_plan`` validates it. A missing file yields no structures, which
    makes the orchestrator fall back to mirroring.
    """

    def __init__(self, plan_file: Path) -> None:
        self.plan_file = plan_file

    def discover(self, project_root: Path) -> list[dict[str, Any]]:  # noqa: ARG002
        if not self.plan_file.exists():
            log.warning("TOC plan file not found", path=str(self.plan_file))
            return []
        try:
            text = self.plan_file.read_text(encoding="utf-8")
            if self.plan_file.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read TOC plan {self.plan_file}: {e}") from e

        if not data:
            return []
        if not isinstance(data, dict):
            raise ConfigurationError(f"TOC plan {self.plan_file} must be a mapping")
        return [data]

    def create_plan(self, structures: list[dict[str, Any]], target_format: str) -> TocPlan:  # noqa: ARG002
        plan = TocPlan()
        for structure in structures:
            try:
                part = TocPlan.model_validate(structure)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid TOC plan {self.plan_file}: {e}") from e
            plan.file_mapping.update(part.file_mapping)
            plan.folder_structure.extend(part.folder_structure)
        log.info(
            "TOC plan loaded",
            files=len(plan.file_mapping),
            folders=len(plan.folder_structure),
        )
        return plan
