"""
Sub commands
Implemented via sub typers in Typer.
"""

from .config import config_app

__all__ = ["config_app"]
