"""
CLI module for Figi.

Provides a small command-line interface, built with Click, for inspecting
the configuration an application would see.
"""

from figi.cli.main import cli, main

__all__ = ["main", "cli"]
