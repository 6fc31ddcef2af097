"""docport - batch conversion of documentation projects."""

__version__ = "0.3.0"
