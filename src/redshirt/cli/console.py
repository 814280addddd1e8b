"""Shared console utilities for the CLI."""

from rich.console import Console
from rich.markup import escape

# Shared console instance; logs go to stderr through the logging handlers.
console = Console(stderr=True)


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{escape(msg)}[/red]", highlight=False, soft_wrap=True)


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{escape(msg)}[/dim]", highlight=False, soft_wrap=True)
