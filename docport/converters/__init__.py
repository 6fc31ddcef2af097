"""Document converters for docport."""

from docport.converters.base import BaseConverter
from docport.converters.passthrough import PassthroughConverter

__all__ = ["BaseConverter", "PassthroughConverter"]
