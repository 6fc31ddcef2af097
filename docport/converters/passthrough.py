"""A converter that keeps markup as-is and reports its images."""

import re
from pathlib import Path

import anyio

from docport.config.settings import BatchConfig
from docport.converters.base import BaseConverter
from docport.core.planner import extract_heading
from docport.services.protocols import ConversionMetadata, ConversionOutput
from docport.utils.fs import read_text

_IMG_SRC = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.I)


def find_image_references(content: str) -> list[str]:
    """Image sources referenced by ``<img>`` tags, in order, without duplicates."""
    seen: list[str] = []
    for match in _IMG_SRC.finditer(content):
        src = match.group(1).strip()
        if src and src not in seen:
            seen.append(src)
    return seen


class PassthroughConverter(BaseConverter):
    """Copies HTML/XML sources through unchanged.

    The output is HTML, so it only produces the ``zendesk`` target format.
    Used by the CLI when no format converter is installed.
    """

    name = "passthrough"
    supported_extensions = {".html", ".htm", ".xml"}
    target_formats = ("zendesk",)

    async def convert(
        self,
        input_path: Path,
        output_path: Path,  # noqa: ARG002
        options: BatchConfig,  # noqa: ARG002
    ) -> ConversionOutput:
        content = await anyio.to_thread.run_sync(read_text, input_path)
        return ConversionOutput(
            content=content,
            metadata=ConversionMetadata(
                images=find_image_references(content),
                title=extract_heading(content),
            ),
        )
