"""Command line interface."""

from smart_diary.cli.main import cli

__all__ = ["cli"]
