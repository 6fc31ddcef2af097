"""Configuration module for docport."""

from docport.config.settings import (
    BatchConfig,
    DocportSettings,
    TargetFormat,
    get_settings,
    reload_settings,
)

__all__ = [
    "BatchConfig",
    "DocportSettings",
    "TargetFormat",
    "get_settings",
    "reload_settings",
]
