"""
CLI module for stagekey.

Provides the command-line interface using Click.
"""

from stagekey.cli.main import cli, main

__all__ = ["main", "cli"]
