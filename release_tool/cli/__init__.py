"""Command line interface for release-tool"""

from .main import cli, main

__all__ = ["cli", "main"]
