"""Command line interface."""

from __future__ import annotations

from dockyard.cli.main import DockyardCLI, main

__all__ = [
    "DockyardCLI",
    "main",
]
