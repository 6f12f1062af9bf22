"""
CLI module - interactive console built on prompt_toolkit and Rich.
"""

from sage.cli.commands import main

__all__ = ["main"]
