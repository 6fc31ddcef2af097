"""Command-line interface for docport."""
