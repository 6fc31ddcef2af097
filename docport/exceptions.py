"""Custom exceptions for docport."""

from pathlib import Path


class DocportError(Exception):
    """Base exception class for docport."""

    pass


class DiscoveryError(DocportError):
    """A directory could not be listed during discovery.

    The subtree is skipped and the walk continues.
    """

    def __init__(self, path: Path, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot read directory {path}{detail}")


class ConversionError(DocportError):
    """Error during document conversion."""

    def __init__(self, file_path: Path, message: str, cause: Exception | None = None) -> None:
        self.file_path = file_path
        self.cause = cause
        super().__init__(f"Conversion failed for {file_path}: {message}")


class ConversionTimeoutError(ConversionError):
    """The converter did not finish within the per-file time bound."""

    def __init__(self, file_path: Path, timeout: float) -> None:
        super().__init__(file_path, f"Conversion timeout after {timeout:g}s")
        self.timeout = timeout


class ReferenceRewriteError(DocportError):
    """Cross-references in one output file could not be rewritten."""

    def __init__(self, file_path: Path, cause: Exception | None = None) -> None:
        self.file_path = file_path
        self.cause = cause
        super().__init__(f"Failed to rewrite references in {file_path}: {cause}")


class AssetCopyError(DocportError):
    """An image or image directory could not be copied."""

    def __init__(self, source: Path, target: Path, cause: Exception | None = None) -> None:
        self.source = source
        self.target = target
        self.cause = cause
        super().__init__(f"Failed to copy {source} -> {target}: {cause}")


class OutputRootError(DocportError):
    """The output root could not be created. Fatal for the whole batch."""

    def __init__(self, path: Path, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot create output directory {path}: {cause}")


class StateError(DocportError):
    """Illegal task state transition."""

    pass


class ConfigurationError(DocportError):
    """Configuration error."""

    pass
