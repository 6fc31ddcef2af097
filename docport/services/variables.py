"""Flare variable-set extraction and rendering to include files."""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from xml.sax.saxutils import quoteattr

from docport.utils.logging import get_logger

log = get_logger(__name__)

VARIABLE_SET_DIRS = (
    "Project/VariableSets",
    "Content/Resources/Variables",
    "Content/Variables",
    "Variables",
    "VariableSets",
)

_ATTR_INVALID = re.compile(r"[^a-z0-9_-]+")


@dataclass(frozen=True)
class Variable:
    name: str
    value: str
    namespace: str | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name


def attribute_name(variable: Variable) -> str:
    """AsciiDoc attribute / Writerside var name for a variable."""
    name = _ATTR_INVALID.sub("_", variable.qualified_name.lower().replace(".", "_"))
    return name.strip("_") or "var"


def parse_variable_set(path: Path) -> list[Variable]:
    """Read a ``.flvar`` file.

    The value comes from ``EvaluatedDefinition``, then the element text, then
    ``Definition``.
    """
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        log.warning("Cannot parse variable set", path=str(path), error=str(e))
        return []

    namespace = path.stem
    variables = []
    for element in root.iter("Variable"):
        name = element.get("Name")
        if not name:
            continue
        value = (
            element.get("EvaluatedDefinition")
            or (element.text or "").strip()
            or element.get("Definition")
            or ""
        )
        variables.append(Variable(name=name, value=value, namespace=namespace))
    return variables


class FlareVariableExtractor:
    """Collects variables from a project's variable sets and converted documents.

    Later definitions of the same qualified name replace earlier ones while
    keeping their first position.
    """

    def __init__(self) -> None:
        self._variables: dict[str, Variable] = {}

    def __len__(self) -> int:
        return len(self._variables)

    def _add(self, variable: Variable) -> None:
        self._variables[variable.qualified_name] = variable

    def extract_from_project(self, project_root: Path) -> None:
        seen: set[Path] = set()
        for rel in VARIABLE_SET_DIRS:
            directory = project_root / rel
            if not directory.is_dir():
                continue
            for path in sorted(directory.rglob("*.flvar")):
                if path.name.startswith("._") or path in seen:
                    continue
                seen.add(path)
                for variable in parse_variable_set(path):
                    self._add(variable)
        log.info("Project variables extracted", files=len(seen), variables=len(self._variables))

    def add_variables(self, variables: list[dict[str, Any]]) -> None:
        for item in variables:
            name = item.get("name")
            if not name:
                continue
            self._add(
                Variable(
                    name=str(name),
                    value=str(item.get("value", "")),
                    namespace=item.get("namespace"),
                )
            )

    def render(self, variable_format: str) -> str | None:
        if not self._variables:
            return None
        variables = list(self._variables.values())
        if variable_format == "writerside":
            lines = [
                '<?xml version="1.0" encoding="UTF-8"?>',
                '<!DOCTYPE vars SYSTEM "https://resources.jetbrains.com/writerside/1.0/vars.dtd">',
                "<vars>",
            ]
            for variable in variables:
                lines.append(
                    f"    <var name={quoteattr(attribute_name(variable))} "
                    f"value={quoteattr(variable.value)}/>"
                )
            lines.append("</vars>")
        else:
            lines = ["// Document attributes extracted from project variables", ""]
            for variable in variables:
                value = " ".join(variable.value.split())
                lines.append(f":{attribute_name(variable)}: {value}")
        return "\n".join(lines) + "\n"
