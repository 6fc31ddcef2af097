"""Shared CLI helpers."""

from docport.cli.shared.signals import SignalHandler

__all__ = ["SignalHandler"]
