"""Command line interface for pkbimport."""

from pkbimport.cli.main import cli, main

__all__ = ["cli", "main"]
