"""Pytest configuration and fixtures."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from docport.config.settings import BatchConfig
from docport.converters.passthrough import find_image_references
from docport.core.planner import extract_heading
from docport.services.protocols import ConversionMetadata, ConversionOutput

# Smallest valid PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


def write_topic(path: Path, title: str, body: str = "", conditions: str | None = None) -> Path:
    """Write a minimal Flare-style topic."""
    path.parent.mkdir(parents=True, exist_ok=True)
    attr = f' madcap:conditions="{conditions}"' if conditions else ""
    path.write_text(
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<html xmlns:MadCap="http://www.madcapsoftware.com/Schemas/MadCap.xsd"{attr}>\n'
        f"<head><title>{title}</title></head>\n"
        f"<body>\n<h1>{title}</h1>\n{body}\n</body>\n</html>\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def output_dir(temp_dir: Path) -> Path:
    """Output root outside the input tree (not yet created)."""
    return temp_dir / "converted"


@pytest.fixture
def flare_project(temp_dir: Path) -> Path:
    """A small Flare-like project with topics, images and noise files."""
    project = temp_dir / "MyProject"
    content = project / "Content"

    write_topic(
        content / "Topics" / "intro.htm",
        "Getting Started!!",
        '<p>See <a href="install.htm">installing</a>.</p>\n'
        '<img src="../Resources/Images/logo.png" />',
    )
    write_topic(content / "Topics" / "install.htm", "Installing the Product")
    write_topic(content / "Topics" / "old-feature.htm", "Old Feature", conditions="Default.Deprecated")
    write_topic(content / "Reference" / "api.htm", "API Reference")

    images = content / "Resources" / "Images"
    images.mkdir(parents=True)
    (images / "logo.png").write_bytes(PNG_BYTES)
    (images / "diagram.png").write_bytes(PNG_BYTES)

    (content / "Topics" / ".DS_Store").write_bytes(b"\x00\x01")
    (content / "Topics" / "intro.htm.bak").write_text("backup", encoding="utf-8")
    (content / "Topics" / "notes.txt").write_text("not a topic", encoding="utf-8")
    (content / "node_modules").mkdir()
    write_topic(content / "node_modules" / "vendor.htm", "Vendor")

    variables = project / "Project" / "VariableSets"
    variables.mkdir(parents=True)
    (variables / "General.flvar").write_text(
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<CatapultVariableSet>\n"
        '  <Variable Name="ProductName" EvaluatedDefinition="Widget Pro">Widget Pro</Variable>\n'
        '  <Variable Name="Version">4.2</Variable>\n'
        "</CatapultVariableSet>\n",
        encoding="utf-8",
    )
    return project


@pytest.fixture
def flat_topics(temp_dir: Path):
    """Factory creating ``count`` numbered topics in a flat input directory."""

    def _make(count: int, name: str = "docs") -> Path:
        root = temp_dir / name
        root.mkdir()
        for i in range(1, count + 1):
            write_topic(root / f"topic{i:03d}.htm", f"Topic {i}")
        return root

    return _make


class FakeConverter:
    """Converter double that records calls and returns predictable content."""

    supported_extensions = {".htm", ".html", ".xml"}

    def __init__(
        self,
        fail_on: set[str] | None = None,
        delay: dict[str, float] | None = None,
        metadata: dict[str, ConversionMetadata] | None = None,
    ) -> None:
        self.fail_on = fail_on or set()
        self.delay = delay or {}
        self.metadata = metadata or {}
        self.calls: list[Path] = []
        self.active = 0
        self.max_active = 0

    def supports(self, extension: str) -> bool:
        return extension in self.supported_extensions

    async def convert(self, input_path: Path, output_path: Path, options: BatchConfig) -> ConversionOutput:
        self.calls.append(input_path)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay.get(input_path.name, 0))
            if input_path.name in self.fail_on:
                raise RuntimeError(f"cannot convert {input_path.name}")
            content = input_path.read_text(encoding="utf-8")
            metadata = self.metadata.get(input_path.name) or ConversionMetadata(
                images=find_image_references(content),
                title=extract_heading(content),
            )
            return ConversionOutput(content=f"converted:{input_path.name}\n", metadata=metadata)
        finally:
            self.active -= 1


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


class RecordingSleep:
    """Injected sleep that records durations without waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def converter_factory():
    """The FakeConverter class, for tests that need custom behaviour."""
    return FakeConverter


@pytest.fixture
def topic_writer():
    """The ``write_topic`` helper."""
    return write_topic


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
