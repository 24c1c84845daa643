"""Command line interface for qwen-chat"""

from cli.main import main

__all__ = ["main"]
