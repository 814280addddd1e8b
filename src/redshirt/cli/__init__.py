"""Command-line entry point."""

from redshirt.cli.app import app

__all__ = ["app"]
