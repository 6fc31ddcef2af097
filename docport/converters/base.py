"""Base converter interface."""

from abc import ABC, abstractmethod
from pathlib import Path

from docport.config.settings import BatchConfig
from docport.services.protocols import ConversionOutput


class BaseConverter(ABC):
    """Abstract base class for document converters.

    Any object with a matching async ``convert`` satisfies the
    ``DocumentConverter`` protocol; subclassing is optional.
    """

    name: str = "base"
    supported_extensions: set[str] = set()
    # Target formats whose markup this converter emits; empty means any
    target_formats: tuple[str, ...] = ()

    @abstractmethod
    async def convert(
        self,
        input_path: Path,
        output_path: Path,
        options: BatchConfig,
    ) -> ConversionOutput:
        """Convert one document.

        Args:
            input_path: Path to the source document
            output_path: Planned output path
            options: Batch configuration

        Returns:
            ConversionOutput with converted content and metadata
        """
        pass

    def supports(self, extension: str) -> bool:
        """Check if this converter supports the given file extension.

        Args:
            extension: File extension including the dot (e.g., '.htm')

        Returns:
            True if supported, False otherwise
        """
        return extension.lower() in self.supported_extensions

    def produces(self, target_format: str) -> bool:
        """Check if this converter emits markup for ``target_format``."""
        return not self.target_formats or target_format in self.target_formats
