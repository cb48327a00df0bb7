"""Command-line interface for ecsdeploy."""

from .main import main

__all__ = ["main"]
